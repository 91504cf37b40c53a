import uuid

from django.db import models


def default_khairat_settings() -> dict:
    return {"enabled": False, "fixed_price": None, "description": ""}


class Mosque(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    user = models.ForeignKey(
        "authentication.User",
        on_delete=models.PROTECT,
        related_name="mosques",
    )
    is_active = models.BooleanField(default=True)
    khairat_settings = models.JSONField(default=default_khairat_settings, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name
