from rest_framework.routers import DefaultRouter

from .views import MosqueViewSet

router = DefaultRouter()
router.register("", MosqueViewSet, basename="mosque")

urlpatterns = router.urls
