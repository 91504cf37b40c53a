import uuid

from django.db import models


class PaymentProvider(models.Model):
    PROVIDER_CHOICES = [
        ("billplz", "Billplz"),
        ("toyyibpay", "ToyyibPay"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mosque = models.ForeignKey(
        "mosques.Mosque",
        on_delete=models.CASCADE,
        related_name="payment_providers",
    )
    provider_type = models.CharField(max_length=20, choices=PROVIDER_CHOICES)

    # Billplz
    billplz_api_key = models.CharField(max_length=255, blank=True, null=True)
    billplz_x_signature_key = models.CharField(max_length=255, blank=True, null=True)
    billplz_collection_id = models.CharField(max_length=100, blank=True, null=True)

    # ToyyibPay
    toyyibpay_secret_key = models.CharField(max_length=255, blank=True, null=True)
    toyyibpay_category_code = models.CharField(max_length=100, blank=True, null=True)

    is_active = models.BooleanField(default=False)
    is_sandbox = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["provider_type"]
        constraints = [
            models.UniqueConstraint(fields=["mosque", "provider_type"], name="unique_payment_provider_per_mosque"),
            models.UniqueConstraint(
                fields=["mosque"],
                condition=models.Q(is_active=True),
                name="single_active_payment_provider_per_mosque",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_provider_type_display()} ({self.mosque_id})"

    @property
    def credentials(self) -> dict[str, str]:
        prefix = f"{self.provider_type}_"
        return {
            field.name[len(prefix):]: getattr(self, field.name) or ""
            for field in self._meta.concrete_fields
            if field.name.startswith(prefix)
        }


class PaymentLog(models.Model):
    provider = models.CharField(max_length=50)
    reference = models.CharField(max_length=100, db_index=True)
    raw_payload = models.JSONField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
