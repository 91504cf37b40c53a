"""
Status transitions for reviewable records (kariah applications, khairat claims).

Every write is a conditional UPDATE keyed on the status and version the caller
read, so two reviewers acting on the same row cannot silently overwrite each
other: the slower one gets ``ConcurrentUpdateError``.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db.models import F
from django.utils import timezone

from core.exceptions import ConcurrentUpdateError, InvalidStateError, ValidationError
from core.models import ReviewableModel

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = ("approved", "rejected")


def ensure_transition(record: ReviewableModel, target_status: str) -> None:
    if not record.is_known_status(target_status):
        raise ValidationError({"status": f"Unknown status '{target_status}'."})
    if not record.can_transition_to(target_status):
        raise InvalidStateError(f"Cannot change status from {record.status} to {target_status}.")


def apply_transition(
    record: ReviewableModel,
    target_status: str,
    *,
    expected_version: int | None = None,
    **fields: Any,
) -> ReviewableModel:
    ensure_transition(record, target_status)
    if expected_version is not None and expected_version != record.version:
        raise ConcurrentUpdateError()

    model = type(record)
    previous_status = record.status
    updated = model.objects.filter(
        pk=record.pk,
        status=previous_status,
        version=record.version,
    ).update(
        status=target_status,
        version=F("version") + 1,
        updated_at=timezone.now(),
        **fields,
    )
    if not updated:
        raise ConcurrentUpdateError()

    record.refresh_from_db()
    logger.info(
        "%s %s: %s -> %s (v%s)",
        model.__name__,
        record.pk,
        previous_status,
        target_status,
        record.version,
    )
    return record


def review(
    record: ReviewableModel,
    target_status: str,
    reviewer,
    admin_notes: str | None = None,
    *,
    expected_version: int | None = None,
    **fields: Any,
) -> ReviewableModel:
    """
    Approve or reject ``record`` on behalf of ``reviewer``.

    Rejections must carry admin notes. Nothing is written when validation or
    the transition check fails.
    """
    if target_status not in REVIEW_OUTCOMES:
        raise ValidationError({"status": "Status must be either 'approved' or 'rejected'."})
    if reviewer is None:
        raise ValidationError({"reviewer": "A reviewer is required."})

    notes = (admin_notes or "").strip()
    if target_status == "rejected" and not notes:
        raise ValidationError({"admin_notes": "Admin notes are required when rejecting."})

    return apply_transition(
        record,
        target_status,
        expected_version=expected_version,
        reviewed_by=reviewer,
        reviewed_at=timezone.now(),
        admin_notes=notes or None,
        **fields,
    )
