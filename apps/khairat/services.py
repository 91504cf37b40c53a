from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from apps.authentication.models import User
from apps.mosques.models import Mosque
from apps.notifications.services import notify_user
from core import workflow
from core.exceptions import NotAuthorizedError, ValidationError

from .models import KhairatClaim, KhairatContribution

logger = logging.getLogger(__name__)


def _to_amount(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: "Enter a valid amount."})
    if not amount.is_finite():
        raise ValidationError({field: "Enter a valid amount."})
    return amount.quantize(Decimal("0.01"))


def get_claim(claim_id, mosque_id=None) -> KhairatClaim:
    qs = KhairatClaim.objects.select_related("claimant", "mosque")
    if mosque_id is not None:
        qs = qs.filter(mosque_id=mosque_id)
    try:
        return qs.get(pk=claim_id)
    except (KhairatClaim.DoesNotExist, DjangoValidationError):
        raise NotFound("Claim not found.")


def submit_claim(
    claimant: User,
    mosque: Mosque,
    title: str,
    requested_amount,
    description: str | None = None,
    priority: str = "medium",
) -> KhairatClaim:
    amount = _to_amount(requested_amount, "requested_amount")
    if amount <= 0:
        raise ValidationError({"requested_amount": "Requested amount must be greater than zero."})
    if priority not in dict(KhairatClaim.PRIORITY_CHOICES):
        raise ValidationError({"priority": f"Unknown priority '{priority}'."})

    claim = KhairatClaim.objects.create(
        claimant=claimant,
        mosque=mosque,
        title=title.strip(),
        description=(description or "").strip() or None,
        priority=priority,
        requested_amount=amount,
    )
    logger.info("Khairat claim %s submitted by %s for RM%s", claim.pk, claimant.pk, amount)
    notify_user(
        mosque.user,
        title="New Khairat Claim",
        message=f"{claimant.full_name} submitted a khairat claim of RM{amount}: {claim.title}",
        type="warning" if priority in ("high", "urgent") else "info",
        mosque=mosque,
        action_url="/khairat/claims",
        metadata={"khairat_claim_id": str(claim.pk), "action": "claim_submitted"},
    )
    return claim


def start_review(claim_id, mosque_id, reviewer: User) -> KhairatClaim:
    claim = get_claim(claim_id, mosque_id)
    return workflow.apply_transition(
        claim,
        "under_review",
        reviewed_by=reviewer,
        reviewed_at=timezone.now(),
    )


def review_claim(
    claim_id,
    mosque_id,
    target_status: str,
    reviewer: User,
    admin_notes: str | None = None,
    approved_amount=None,
    expected_version: int | None = None,
) -> KhairatClaim:
    """
    Approve or reject a claim. An approval pays out ``approved_amount`` when
    given, otherwise the full requested amount; it may never exceed what was
    requested.
    """
    claim = get_claim(claim_id, mosque_id)

    fields = {}
    if target_status == "approved":
        amount = claim.requested_amount if approved_amount is None else _to_amount(approved_amount, "approved_amount")
        if amount <= 0:
            raise ValidationError({"approved_amount": "Approved amount must be greater than zero."})
        if amount > claim.requested_amount:
            raise ValidationError({"approved_amount": "Approved amount cannot exceed the requested amount."})
        fields = {
            "approved_amount": amount,
            "approved_by": reviewer,
            "approved_at": timezone.now(),
        }

    with transaction.atomic():
        claim = workflow.review(
            claim,
            target_status,
            reviewer,
            admin_notes,
            expected_version=expected_version,
            **fields,
        )

    if claim.status == "approved":
        notify_user(
            claim.claimant,
            title="Khairat Claim Approved",
            message=f"Your khairat claim '{claim.title}' has been approved for RM{claim.approved_amount}.",
            type="success",
            mosque=claim.mosque,
            action_url="/khairat/claims",
            metadata={"khairat_claim_id": str(claim.pk), "action": "claim_reviewed", "status": "approved"},
        )
    else:
        notify_user(
            claim.claimant,
            title="Khairat Claim Rejected",
            message=f"Your khairat claim '{claim.title}' has been rejected. Reason: {claim.admin_notes}",
            type="error",
            mosque=claim.mosque,
            action_url="/khairat/claims",
            metadata={"khairat_claim_id": str(claim.pk), "action": "claim_reviewed", "status": "rejected"},
        )
    return claim


def mark_claim_paid(
    claim_id,
    mosque_id,
    reviewer: User,
    notes: str | None = None,
    expected_version: int | None = None,
) -> KhairatClaim:
    claim = get_claim(claim_id, mosque_id)
    now = timezone.now()

    admin_notes = claim.admin_notes or ""
    payment_note = f"Paid on {timezone.localtime(now):%Y-%m-%d} by {reviewer.full_name}"
    if notes and notes.strip():
        payment_note = f"{payment_note}: {notes.strip()}"
    admin_notes = f"{admin_notes}\n{payment_note}" if admin_notes else payment_note

    claim = workflow.apply_transition(
        claim,
        "paid",
        expected_version=expected_version,
        paid_at=now,
        admin_notes=admin_notes,
    )
    notify_user(
        claim.claimant,
        title="Khairat Claim Paid",
        message=f"RM{claim.approved_amount} for your khairat claim '{claim.title}' has been paid out.",
        type="success",
        mosque=claim.mosque,
        action_url="/khairat/claims",
        metadata={"khairat_claim_id": str(claim.pk), "action": "claim_paid"},
    )
    return claim


def cancel_claim(claim_id, claimant: User) -> KhairatClaim:
    claim = get_claim(claim_id)
    if claim.claimant_id != claimant.pk:
        raise NotAuthorizedError("Only the claimant can cancel this claim.")
    return workflow.apply_transition(claim, "cancelled")


def record_contribution(
    mosque: Mosque,
    amount,
    payer_name: str,
    payment_method: str = "online",
    contributor: User | None = None,
    payer_email: str | None = None,
    payer_phone: str | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> KhairatContribution:
    """
    Online contributions start out pending until the gateway confirms them;
    cash and bank transfers are recorded by the mosque as already received.
    """
    amount = _to_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError({"amount": "Amount must be greater than zero."})

    offline = payment_method != "online"
    contribution = KhairatContribution.objects.create(
        mosque=mosque,
        contributor=contributor,
        payer_name=payer_name.strip(),
        payer_email=payer_email or None,
        payer_phone=payer_phone or None,
        amount=amount,
        payment_method=payment_method,
        status="completed" if offline else "pending",
        payment_reference=payment_reference or None,
        notes=notes or None,
        paid_at=timezone.now() if offline else None,
    )
    logger.info(
        "Khairat contribution %s recorded for mosque %s: RM%s via %s",
        contribution.pk,
        mosque.pk,
        amount,
        payment_method,
    )
    return contribution
