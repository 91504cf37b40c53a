from rest_framework import serializers

from apps.mosques.models import Mosque

from .models import PaymentProvider
from .services import CREDENTIAL_FIELDS, missing_credentials

SECRET_FIELDS = {"api_key", "x_signature_key", "secret_key"}


def mask(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


class PaymentProviderSerializer(serializers.ModelSerializer):
    credentials = serializers.SerializerMethodField()
    is_configured = serializers.SerializerMethodField()

    class Meta:
        model = PaymentProvider
        fields = [
            "id",
            "mosque",
            "provider_type",
            "credentials",
            "is_configured",
            "is_active",
            "is_sandbox",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_credentials(self, obj):
        return {
            field: mask(value) if field in SECRET_FIELDS else value
            for field, value in obj.credentials.items()
        }

    def get_is_configured(self, obj) -> bool:
        return not missing_credentials(obj.provider_type, obj.credentials)


class ProviderCredentialsSerializer(serializers.Serializer):
    provider_type = serializers.ChoiceField(choices=list(CREDENTIAL_FIELDS))
    credentials = serializers.DictField(child=serializers.CharField(allow_blank=True), write_only=True)
    is_sandbox = serializers.BooleanField(default=True)


class ProviderWriteSerializer(ProviderCredentialsSerializer):
    mosque = serializers.PrimaryKeyRelatedField(queryset=Mosque.objects.all())
    activate = serializers.BooleanField(default=True)


class ProviderDeactivateSerializer(serializers.Serializer):
    mosque = serializers.PrimaryKeyRelatedField(queryset=Mosque.objects.all())
    provider_type = serializers.ChoiceField(choices=list(CREDENTIAL_FIELDS))
