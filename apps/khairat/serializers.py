from rest_framework import serializers

from apps.mosques.models import Mosque

from .models import KhairatClaim, KhairatContribution


class KhairatClaimSerializer(serializers.ModelSerializer):
    claimant_name = serializers.CharField(source="claimant.full_name", read_only=True)
    mosque_name = serializers.CharField(source="mosque.name", read_only=True)

    class Meta:
        model = KhairatClaim
        fields = [
            "id",
            "claimant",
            "claimant_name",
            "mosque",
            "mosque_name",
            "title",
            "description",
            "priority",
            "requested_amount",
            "approved_amount",
            "status",
            "admin_notes",
            "reviewed_by",
            "reviewed_at",
            "approved_by",
            "approved_at",
            "paid_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class KhairatClaimCreateSerializer(serializers.Serializer):
    mosque = serializers.PrimaryKeyRelatedField(queryset=Mosque.objects.filter(is_active=True))
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    priority = serializers.ChoiceField(choices=KhairatClaim.PRIORITY_CHOICES, default="medium")
    requested_amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class ClaimReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["approved", "rejected"])
    admin_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    approved_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class MarkPaidSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class KhairatContributionSerializer(serializers.ModelSerializer):
    mosque_name = serializers.CharField(source="mosque.name", read_only=True)

    class Meta:
        model = KhairatContribution
        fields = [
            "id",
            "mosque",
            "mosque_name",
            "contributor",
            "payer_name",
            "payer_email",
            "payer_phone",
            "amount",
            "payment_method",
            "status",
            "payment_provider",
            "bill_id",
            "payment_reference",
            "notes",
            "paid_at",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "mosque_name",
            "contributor",
            "status",
            "payment_provider",
            "bill_id",
            "paid_at",
            "created_at",
        ]
        extra_kwargs = {"mosque": {"queryset": Mosque.objects.filter(is_active=True)}}

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value


class PaySerializer(serializers.Serializer):
    redirect_url = serializers.URLField(required=False, allow_blank=True)
