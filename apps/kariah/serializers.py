from rest_framework import serializers

from apps.mosques.models import Mosque

from .models import KariahApplication, KariahMembership


class KariahApplicationSerializer(serializers.ModelSerializer):
    applicant_name = serializers.CharField(source="user.full_name", read_only=True)
    applicant_email = serializers.EmailField(source="user.email", read_only=True)
    mosque_name = serializers.CharField(source="mosque.name", read_only=True)

    class Meta:
        model = KariahApplication
        fields = [
            "id",
            "user",
            "applicant_name",
            "applicant_email",
            "mosque",
            "mosque_name",
            "ic_passport_number",
            "notes",
            "status",
            "admin_notes",
            "reviewed_by",
            "reviewed_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class KariahApplicationCreateSerializer(serializers.Serializer):
    mosque = serializers.PrimaryKeyRelatedField(queryset=Mosque.objects.filter(is_active=True))
    ic_passport_number = serializers.CharField(max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=["approved", "rejected"])
    admin_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class KariahMembershipSerializer(serializers.ModelSerializer):
    member_name = serializers.CharField(source="user.full_name", read_only=True)
    mosque_name = serializers.CharField(source="mosque.name", read_only=True)

    class Meta:
        model = KariahMembership
        fields = [
            "id",
            "user",
            "member_name",
            "mosque",
            "mosque_name",
            "application",
            "membership_number",
            "status",
            "joined_date",
            "withdrawn_at",
            "notes",
            "created_at",
        ]
        read_only_fields = fields
