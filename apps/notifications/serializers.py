from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    mosque_name = serializers.CharField(source="mosque.name", read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            "id",
            "mosque",
            "mosque_name",
            "title",
            "message",
            "type",
            "action_url",
            "metadata",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields
