import secrets
import uuid

from django.db import models

from core.models import ReviewableModel


class KariahApplication(ReviewableModel):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("under_review", "Under Review"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
        ("withdrawn", "Withdrawn"),
    ]

    TRANSITIONS = {
        "pending": frozenset({"under_review", "approved", "rejected"}),
        "under_review": frozenset({"approved", "rejected"}),
        "approved": frozenset({"withdrawn"}),
        "rejected": frozenset(),
        "withdrawn": frozenset(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        "authentication.User",
        on_delete=models.CASCADE,
        related_name="kariah_applications",
    )
    mosque = models.ForeignKey(
        "mosques.Mosque",
        on_delete=models.CASCADE,
        related_name="kariah_applications",
    )
    ic_passport_number = models.CharField(max_length=20)
    notes = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "mosque"], name="unique_kariah_application_per_mosque"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} -> {self.mosque_id} ({self.status})"


def generate_membership_number() -> str:
    return f"KRH-{secrets.token_hex(4).upper()}"


class KariahMembership(models.Model):
    STATUS_CHOICES = [
        ("active", "Active"),
        ("withdrawn", "Withdrawn"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        "authentication.User",
        on_delete=models.CASCADE,
        related_name="kariah_memberships",
    )
    mosque = models.ForeignKey(
        "mosques.Mosque",
        on_delete=models.CASCADE,
        related_name="kariah_memberships",
    )
    application = models.ForeignKey(
        KariahApplication,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="memberships",
    )
    membership_number = models.CharField(max_length=20, unique=True, default=generate_membership_number)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", db_index=True)
    joined_date = models.DateField()
    withdrawn_at = models.DateTimeField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-joined_date"]
        constraints = [
            models.UniqueConstraint(fields=["user", "mosque"], name="unique_kariah_membership_per_mosque"),
        ]

    def __str__(self) -> str:
        return self.membership_number
