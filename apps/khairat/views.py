from django.db.models import Q
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.mosques.permissions import ensure_mosque_admin, is_mosque_admin
from apps.payments.services import create_contribution_payment
from core.exceptions import NotAuthorizedError

from . import services
from .models import KhairatClaim, KhairatContribution
from .serializers import (
    ClaimReviewSerializer,
    KhairatClaimCreateSerializer,
    KhairatClaimSerializer,
    KhairatContributionSerializer,
    MarkPaidSerializer,
    PaySerializer,
)


class KhairatClaimViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = KhairatClaimSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "mosque", "priority"]
    search_fields = ["title", "claimant__full_name"]
    ordering_fields = ["created_at", "requested_amount", "priority"]

    def get_queryset(self):
        user = self.request.user
        qs = KhairatClaim.objects.select_related("claimant", "mosque")
        if user.is_platform_admin:
            return qs
        return qs.filter(Q(claimant=user) | Q(mosque__user=user))

    def get_serializer_class(self):
        return {
            "create": KhairatClaimCreateSerializer,
            "review": ClaimReviewSerializer,
            "mark_paid": MarkPaidSerializer,
        }.get(self.action, KhairatClaimSerializer)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = services.submit_claim(claimant=request.user, **serializer.validated_data)
        return Response(KhairatClaimSerializer(claim).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="start-review")
    def start_review(self, request, pk=None):
        claim = self.get_object()
        ensure_mosque_admin(request.user, claim.mosque)
        claim = services.start_review(claim.pk, claim.mosque_id, request.user)
        return Response(KhairatClaimSerializer(claim).data)

    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        claim = self.get_object()
        ensure_mosque_admin(request.user, claim.mosque)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        claim = services.review_claim(
            claim.pk,
            claim.mosque_id,
            data["status"],
            request.user,
            admin_notes=data.get("admin_notes"),
            approved_amount=data.get("approved_amount"),
            expected_version=data.get("expected_version"),
        )
        return Response(KhairatClaimSerializer(claim).data)

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        claim = self.get_object()
        ensure_mosque_admin(request.user, claim.mosque)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = services.mark_claim_paid(
            claim.pk,
            claim.mosque_id,
            request.user,
            notes=serializer.validated_data.get("notes"),
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return Response(KhairatClaimSerializer(claim).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        claim = self.get_object()
        claim = services.cancel_claim(claim.pk, request.user)
        return Response(KhairatClaimSerializer(claim).data)


class KhairatContributionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Members pay online; mosque admins may also record cash and bank
    transfer contributions they received directly.
    """

    serializer_class = KhairatContributionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "mosque", "payment_method"]
    search_fields = ["payer_name", "payer_email", "payment_reference"]
    ordering_fields = ["created_at", "amount"]

    def get_queryset(self):
        user = self.request.user
        qs = KhairatContribution.objects.select_related("mosque", "contributor")
        if user.is_platform_admin:
            return qs
        return qs.filter(Q(contributor=user) | Q(mosque__user=user))

    def perform_create(self, serializer):
        data = serializer.validated_data
        online = data.get("payment_method", "online") == "online"
        if not online and not is_mosque_admin(self.request.user, data["mosque"]):
            raise NotAuthorizedError("Only mosque administrators can record offline contributions.")
        serializer.instance = services.record_contribution(
            contributor=self.request.user if online else None,
            **data,
        )

    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        contribution = self.get_object()
        if contribution.contributor_id != request.user.pk:
            ensure_mosque_admin(request.user, contribution.mosque)
        serializer = PaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = create_contribution_payment(contribution, serializer.validated_data.get("redirect_url") or None)
        return Response(payment, status=status.HTTP_200_OK)
