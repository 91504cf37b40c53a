from rest_framework import serializers

from .models import Mosque


class KhairatSettingsSerializer(serializers.Serializer):
    enabled = serializers.BooleanField(default=False)
    fixed_price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )
    description = serializers.CharField(required=False, allow_blank=True, default="")


class MosqueSerializer(serializers.ModelSerializer):
    admin_name = serializers.CharField(source="user.full_name", read_only=True)
    khairat_settings = serializers.JSONField(required=False)

    class Meta:
        model = Mosque
        fields = [
            "id",
            "name",
            "address",
            "phone",
            "email",
            "user",
            "admin_name",
            "is_active",
            "khairat_settings",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "user", "admin_name", "is_active", "created_at", "updated_at"]

    def validate_khairat_settings(self, value):
        settings_serializer = KhairatSettingsSerializer(data=value or {})
        settings_serializer.is_valid(raise_exception=True)
        data = dict(settings_serializer.validated_data)
        # JSONField cannot store Decimal.
        if data.get("fixed_price") is not None:
            data["fixed_price"] = str(data["fixed_price"])
        return data
