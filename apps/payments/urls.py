from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import BillplzCallbackView, PaymentProviderViewSet, ToyyibPayCallbackView

router = DefaultRouter()
router.register("providers", PaymentProviderViewSet, basename="payment-provider")

urlpatterns = [
    path("billplz/callback/", BillplzCallbackView.as_view(), name="billplz-callback"),
    path("toyyibpay/callback/", ToyyibPayCallbackView.as_view(), name="toyyibpay-callback"),
    *router.urls,
]
