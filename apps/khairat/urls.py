from rest_framework.routers import DefaultRouter

from .views import KhairatClaimViewSet, KhairatContributionViewSet

router = DefaultRouter()
router.register("claims", KhairatClaimViewSet, basename="khairat-claim")
router.register("contributions", KhairatContributionViewSet, basename="khairat-contribution")

urlpatterns = router.urls
