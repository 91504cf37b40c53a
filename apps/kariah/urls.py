from rest_framework.routers import DefaultRouter

from .views import KariahApplicationViewSet, KariahMembershipViewSet

router = DefaultRouter()
router.register("applications", KariahApplicationViewSet, basename="kariah-application")
router.register("memberships", KariahMembershipViewSet, basename="kariah-membership")

urlpatterns = router.urls
