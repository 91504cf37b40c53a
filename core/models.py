"""
Shared base model for records that move through an admin review.

Subclasses declare their own ``status`` field (with choices) and a
``TRANSITIONS`` table mapping each status to the statuses reachable from it.
Statuses missing from the table are not valid for the model.
"""

from django.db import models


class ReviewableModel(models.Model):
    TRANSITIONS: dict[str, frozenset[str]] = {}

    admin_notes = models.TextField(blank=True, null=True)
    reviewed_by = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    reviewed_at = models.DateTimeField(blank=True, null=True)
    # Bumped on every status change; used to detect concurrent reviewers.
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    @classmethod
    def is_known_status(cls, status: str) -> bool:
        return status in cls.TRANSITIONS

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, frozenset())

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS.get(self.status)
