from django.db.models import Q
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.mosques.permissions import ensure_mosque_admin

from . import services
from .models import KariahApplication, KariahMembership
from .serializers import (
    KariahApplicationCreateSerializer,
    KariahApplicationSerializer,
    KariahMembershipSerializer,
    ReviewSerializer,
)


class KariahApplicationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Applicants see their own applications, mosque admins see the ones
    submitted to their mosques.
    """

    serializer_class = KariahApplicationSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "mosque"]
    search_fields = ["user__full_name", "user__email", "ic_passport_number"]
    ordering_fields = ["created_at", "status"]

    def get_queryset(self):
        user = self.request.user
        qs = KariahApplication.objects.select_related("user", "mosque", "reviewed_by")
        if user.is_platform_admin:
            return qs
        return qs.filter(Q(user=user) | Q(mosque__user=user))

    def get_serializer_class(self):
        if self.action == "create":
            return KariahApplicationCreateSerializer
        if self.action == "review":
            return ReviewSerializer
        return KariahApplicationSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = services.submit_application(
            user=request.user,
            mosque=serializer.validated_data["mosque"],
            ic_passport_number=serializer.validated_data["ic_passport_number"],
            notes=serializer.validated_data.get("notes"),
        )
        return Response(KariahApplicationSerializer(application).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        application = self.get_object()
        services.delete_rejected_application(application.pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="start-review")
    def start_review(self, request, pk=None):
        application = self.get_object()
        ensure_mosque_admin(request.user, application.mosque)
        application = services.start_review(application.pk, application.mosque_id, request.user)
        return Response(KariahApplicationSerializer(application).data)

    @action(detail=True, methods=["post"])
    def review(self, request, pk=None):
        application = self.get_object()
        ensure_mosque_admin(request.user, application.mosque)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = services.review_application(
            application.pk,
            application.mosque_id,
            serializer.validated_data["status"],
            request.user,
            admin_notes=serializer.validated_data.get("admin_notes"),
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return Response(KariahApplicationSerializer(application).data)


class KariahMembershipViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = KariahMembershipSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "mosque"]
    search_fields = ["membership_number", "user__full_name"]

    def get_queryset(self):
        user = self.request.user
        qs = KariahMembership.objects.select_related("user", "mosque")
        if user.is_platform_admin:
            return qs
        return qs.filter(Q(user=user) | Q(mosque__user=user))

    @action(detail=True, methods=["post"])
    def withdraw(self, request, pk=None):
        membership = self.get_object()
        membership = services.withdraw_membership(membership.pk, request.user)
        return Response(self.get_serializer(membership).data)
