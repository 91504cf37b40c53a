import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import permissions, status, views, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from apps.authentication.permissions import IsAdminOrMosqueAdmin
from apps.mosques.models import Mosque
from apps.mosques.permissions import ensure_mosque_admin

from . import services
from .models import PaymentProvider
from .serializers import (
    PaymentProviderSerializer,
    ProviderCredentialsSerializer,
    ProviderDeactivateSerializer,
    ProviderWriteSerializer,
)

logger = logging.getLogger(__name__)


def get_mosque(mosque_id) -> Mosque:
    if not mosque_id:
        raise NotFound("Mosque not found.")
    try:
        return Mosque.objects.get(pk=mosque_id)
    except (Mosque.DoesNotExist, DjangoValidationError):
        raise NotFound("Mosque not found.")


class PaymentProviderViewSet(viewsets.GenericViewSet):
    """
    Payment gateway settings of a mosque. Credentials are accepted on write
    and only ever returned masked.
    """

    serializer_class = PaymentProviderSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdminOrMosqueAdmin]
    throttle_scope = "gateway_test"

    def get_permissions(self):
        if self.action == "gateway_status":
            return [permissions.AllowAny()]
        return super().get_permissions()

    def get_throttles(self):
        if self.action == "test":
            return [*super().get_throttles(), ScopedRateThrottle()]
        return super().get_throttles()

    def get_queryset(self):
        return PaymentProvider.objects.select_related("mosque")

    def list(self, request, *args, **kwargs):
        mosque = get_mosque(request.query_params.get("mosque"))
        ensure_mosque_admin(request.user, mosque)
        providers = self.get_queryset().filter(mosque=mosque)
        return Response(self.get_serializer(providers, many=True).data)

    def create(self, request, *args, **kwargs):
        serializer = ProviderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        ensure_mosque_admin(request.user, data["mosque"])

        if data["activate"]:
            provider = services.validate_and_activate(
                data["mosque"], data["provider_type"], data["credentials"], data["is_sandbox"]
            )
        else:
            provider = services.save_provider(
                data["mosque"], data["provider_type"], data["credentials"], data["is_sandbox"]
            )
        return Response(self.get_serializer(provider).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"])
    def test(self, request):
        serializer = ProviderCredentialsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = services.test_connection(data["provider_type"], data["credentials"], data["is_sandbox"])
        return Response({"success": True, "provider_type": data["provider_type"], "details": result})

    @action(detail=False, methods=["post"])
    def deactivate(self, request):
        serializer = ProviderDeactivateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        mosque = serializer.validated_data["mosque"]
        ensure_mosque_admin(request.user, mosque)
        provider = services.deactivate_provider(mosque, serializer.validated_data["provider_type"])
        return Response(self.get_serializer(provider).data)

    @action(detail=False, methods=["get"], url_path="status")
    def gateway_status(self, request):
        mosque = get_mosque(request.query_params.get("mosque"))
        return Response(services.payment_gateway_status(mosque))


def _payload(request) -> dict:
    data = request.data
    if hasattr(data, "dict"):
        return data.dict()
    return dict(data)


class BillplzCallbackView(views.APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        payload = _payload(request)
        contribution = services.handle_billplz_callback(payload, request.headers.get("X-Signature"))
        return Response({"status": "ok", "contribution_status": contribution.status}, status=status.HTTP_200_OK)


class ToyyibPayCallbackView(views.APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        payload = _payload(request)
        contribution = services.handle_toyyibpay_callback(payload)
        return Response({"status": "ok", "contribution_status": contribution.status}, status=status.HTTP_200_OK)
