from __future__ import annotations

import logging
import re

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from apps.authentication.models import User
from apps.mosques.models import Mosque
from apps.notifications.services import notify_user
from core import workflow
from core.exceptions import DuplicateApplicationError, InvalidStateError, NotAuthorizedError, ValidationError

from .models import KariahApplication, KariahMembership

logger = logging.getLogger(__name__)

IC_PATTERN = re.compile(r"^\d{6}-?\d{2}-?\d{4}$")
PASSPORT_PATTERN = re.compile(r"^[A-Z0-9]{6,20}$")


def normalize_ic_passport(value: str | None) -> str:
    """
    Return a Malaysian IC as ``YYMMDD-PB-####`` or a passport number in
    upper case. Anything else is rejected.
    """
    cleaned = (value or "").strip().upper()
    if IC_PATTERN.match(cleaned):
        digits = cleaned.replace("-", "")
        return f"{digits[:6]}-{digits[6:8]}-{digits[8:]}"
    if PASSPORT_PATTERN.match(cleaned):
        return cleaned
    raise ValidationError(
        {"ic_passport_number": "Enter a valid IC number (e.g. 900101-01-1234) or passport number."}
    )


def get_application(application_id, mosque_id=None) -> KariahApplication:
    qs = KariahApplication.objects.select_related("user", "mosque")
    if mosque_id is not None:
        qs = qs.filter(mosque_id=mosque_id)
    try:
        return qs.get(pk=application_id)
    except (KariahApplication.DoesNotExist, DjangoValidationError):
        raise NotFound("Application not found.")


def submit_application(user: User, mosque: Mosque, ic_passport_number: str, notes: str | None = None) -> KariahApplication:
    ic_passport = normalize_ic_passport(ic_passport_number)

    existing = KariahApplication.objects.filter(user=user, mosque=mosque).first()
    if existing is not None:
        if existing.status == "rejected":
            raise DuplicateApplicationError(
                "Your previous application was rejected. Delete it before applying again."
            )
        raise DuplicateApplicationError(f"You already have a {existing.status} application for this mosque.")

    if KariahMembership.objects.filter(user=user, mosque=mosque, status="active").exists():
        raise DuplicateApplicationError("You are already a kariah member of this mosque.")

    try:
        with transaction.atomic():
            application = KariahApplication.objects.create(
                user=user,
                mosque=mosque,
                ic_passport_number=ic_passport,
                notes=(notes or "").strip() or None,
                status="pending",
            )
    except IntegrityError as exc:
        # Lost a race with a parallel submission for the same (user, mosque).
        raise DuplicateApplicationError() from exc

    logger.info("Kariah application %s submitted by %s for mosque %s", application.pk, user.pk, mosque.pk)
    notify_user(
        mosque.user,
        title="New Kariah Application",
        message=f"{user.full_name} applied to join the kariah of {mosque.name}.",
        mosque=mosque,
        action_url="/kariah/applications",
        metadata={"kariah_application_id": str(application.pk), "action": "application_submitted"},
    )
    return application


def start_review(application_id, mosque_id, reviewer: User) -> KariahApplication:
    application = get_application(application_id, mosque_id)
    return workflow.apply_transition(
        application,
        "under_review",
        reviewed_by=reviewer,
        reviewed_at=timezone.now(),
    )


def review_application(
    application_id,
    mosque_id,
    target_status: str,
    reviewer: User,
    admin_notes: str | None = None,
    expected_version: int | None = None,
) -> KariahApplication:
    with transaction.atomic():
        application = get_application(application_id, mosque_id)
        application = workflow.review(
            application,
            target_status,
            reviewer,
            admin_notes,
            expected_version=expected_version,
        )
        if application.status == "approved":
            _activate_membership(application)

    mosque = application.mosque
    if application.status == "approved":
        notify_user(
            application.user,
            title="Kariah Application Approved",
            message=f"Your kariah application for {mosque.name} has been approved. You are now a member!",
            type="success",
            mosque=mosque,
            action_url=f"/mosques/{mosque.pk}",
            metadata={"kariah_application_id": str(application.pk), "action": "application_reviewed", "status": "approved"},
        )
    else:
        notify_user(
            application.user,
            title="Kariah Application Rejected",
            message=f"Your kariah application for {mosque.name} has been rejected. Reason: {application.admin_notes}",
            type="error",
            mosque=mosque,
            action_url=f"/mosques/{mosque.pk}",
            metadata={"kariah_application_id": str(application.pk), "action": "application_reviewed", "status": "rejected"},
        )
    return application


def _activate_membership(application: KariahApplication) -> KariahMembership:
    today = timezone.localdate()
    membership, created = KariahMembership.objects.get_or_create(
        user=application.user,
        mosque=application.mosque,
        defaults={
            "application": application,
            "status": "active",
            "joined_date": today,
            "notes": f"Approved from application {application.pk}",
        },
    )
    if not created:
        # Returning member: reuse the old row so (user, mosque) stays unique.
        membership.application = application
        membership.status = "active"
        membership.joined_date = today
        membership.withdrawn_at = None
        membership.notes = f"Re-approved from application {application.pk}"
        membership.save(update_fields=["application", "status", "joined_date", "withdrawn_at", "notes", "updated_at"])
    logger.info("Kariah membership %s active for user %s", membership.membership_number, application.user_id)
    return membership


def withdraw_membership(membership_id, owner: User) -> KariahMembership:
    with transaction.atomic():
        try:
            membership = (
                KariahMembership.objects.select_for_update()
                .select_related("mosque")
                .get(pk=membership_id)
            )
        except (KariahMembership.DoesNotExist, DjangoValidationError):
            raise NotFound("Membership not found.")

        if membership.user_id != owner.pk:
            raise NotAuthorizedError("You can only withdraw your own membership.")
        if membership.status != "active":
            raise InvalidStateError("Only active memberships can be withdrawn.")

        membership.status = "withdrawn"
        membership.withdrawn_at = timezone.now()
        membership.save(update_fields=["status", "withdrawn_at", "updated_at"])

        # The approved application is closed through its own workflow and then
        # removed, which lets the member apply again later.
        applications = list(
            KariahApplication.objects.select_for_update().filter(
                user_id=owner.pk,
                mosque_id=membership.mosque_id,
                status="approved",
            )
        )
        for application in applications:
            workflow.apply_transition(application, "withdrawn")
            application.delete()
        deleted = len(applications)

    logger.info(
        "Kariah membership %s withdrawn by %s (%s application rows removed)",
        membership.pk,
        owner.pk,
        deleted,
    )
    notify_user(
        owner,
        title="Kariah Membership Withdrawn",
        message=f"Your kariah membership for {membership.mosque.name} has been withdrawn.",
        type="warning",
        mosque=membership.mosque,
        action_url=f"/mosques/{membership.mosque_id}",
        metadata={"kariah_membership_id": str(membership.pk), "action": "membership_withdrawn"},
    )
    return membership


def delete_rejected_application(application_id, owner: User) -> None:
    application = get_application(application_id)
    if application.user_id != owner.pk:
        raise NotAuthorizedError("Only the applicant can delete their own rejected application.")
    if application.status != "rejected":
        raise InvalidStateError("Only rejected applications can be deleted.")

    application.delete()
    logger.info("Rejected kariah application %s deleted by %s", application_id, owner.pk)
