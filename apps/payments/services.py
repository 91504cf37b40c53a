from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from apps.khairat.models import KhairatContribution
from apps.mosques.models import Mosque
from apps.notifications.services import notify_user
from core.exceptions import InvalidStateError, ValidationError

from .models import PaymentLog, PaymentProvider
from .providers import BaseGateway, ToyyibPayGateway, get_gateway

logger = logging.getLogger(__name__)

CREDENTIAL_FIELDS: dict[str, tuple[str, ...]] = {
    "billplz": ("api_key", "x_signature_key", "collection_id"),
    "toyyibpay": ("secret_key", "category_code"),
}

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "billplz": ("api_key", "collection_id"),
    "toyyibpay": ("secret_key", "category_code"),
}


def _check_provider_type(provider_type: str) -> None:
    if provider_type not in CREDENTIAL_FIELDS:
        raise ValidationError({"provider_type": f"Unsupported payment provider '{provider_type}'."})


def clean_credentials(provider_type: str, credentials: dict[str, Any] | None) -> dict[str, str]:
    _check_provider_type(provider_type)
    credentials = credentials or {}
    return {field: str(credentials.get(field) or "").strip() for field in CREDENTIAL_FIELDS[provider_type]}


def missing_credentials(provider_type: str, credentials: dict[str, Any] | None) -> list[str]:
    cleaned = clean_credentials(provider_type, credentials)
    return [field for field in REQUIRED_FIELDS[provider_type] if not cleaned[field]]


def ensure_complete(provider_type: str, credentials: dict[str, Any] | None) -> dict[str, str]:
    cleaned = clean_credentials(provider_type, credentials)
    missing = missing_credentials(provider_type, cleaned)
    if missing:
        raise ValidationError({field: "This field is required." for field in missing})
    return cleaned


def _columns(provider_type: str, credentials: dict[str, str]) -> dict[str, str | None]:
    return {f"{provider_type}_{field}": value or None for field, value in credentials.items()}


def gateway_for(provider: PaymentProvider) -> BaseGateway:
    return get_gateway(provider.provider_type, provider.credentials, provider.is_sandbox)


def test_connection(provider_type: str, credentials: dict[str, Any] | None, is_sandbox: bool = True) -> dict[str, Any]:
    """
    Check the credentials against the gateway without storing anything.
    Incomplete credentials fail before any request goes out.
    """
    cleaned = ensure_complete(provider_type, credentials)
    result = get_gateway(provider_type, cleaned, is_sandbox).test_connection()
    logger.info("%s connection test succeeded (sandbox=%s)", provider_type, is_sandbox)
    return result


def validate_and_activate(
    mosque: Mosque,
    provider_type: str,
    credentials: dict[str, Any] | None,
    is_sandbox: bool = True,
) -> PaymentProvider:
    """
    Make ``provider_type`` the mosque's only active gateway.

    The connectivity test runs first; deactivating the other providers and
    activating this one then happen in one transaction, so a failure at any
    step leaves the previously active provider as it was.
    """
    cleaned = ensure_complete(provider_type, credentials)
    get_gateway(provider_type, cleaned, is_sandbox).test_connection()

    with transaction.atomic():
        list(PaymentProvider.objects.select_for_update().filter(mosque=mosque))
        switched_off = (
            PaymentProvider.objects.filter(mosque=mosque, is_active=True)
            .exclude(provider_type=provider_type)
            .update(is_active=False, updated_at=timezone.now())
        )
        provider, created = PaymentProvider.objects.update_or_create(
            mosque=mosque,
            provider_type=provider_type,
            defaults={
                **_columns(provider_type, cleaned),
                "is_active": True,
                "is_sandbox": is_sandbox,
            },
        )

    logger.info(
        "Mosque %s activated %s (sandbox=%s, created=%s, deactivated=%s)",
        mosque.pk,
        provider_type,
        is_sandbox,
        created,
        switched_off,
    )
    return provider


def save_provider(
    mosque: Mosque,
    provider_type: str,
    credentials: dict[str, Any] | None,
    is_sandbox: bool = True,
) -> PaymentProvider:
    """Store untested credentials. The saved provider is left inactive."""
    cleaned = clean_credentials(provider_type, credentials)
    provider, _ = PaymentProvider.objects.update_or_create(
        mosque=mosque,
        provider_type=provider_type,
        defaults={
            **_columns(provider_type, cleaned),
            "is_active": False,
            "is_sandbox": is_sandbox,
        },
    )
    logger.info("Mosque %s saved %s draft configuration", mosque.pk, provider_type)
    return provider


def deactivate_provider(mosque: Mosque, provider_type: str) -> PaymentProvider:
    _check_provider_type(provider_type)
    try:
        provider = PaymentProvider.objects.get(mosque=mosque, provider_type=provider_type)
    except PaymentProvider.DoesNotExist:
        raise NotFound("Payment provider not configured.")
    if provider.is_active:
        provider.is_active = False
        provider.save(update_fields=["is_active", "updated_at"])
        logger.info("Mosque %s deactivated %s", mosque.pk, provider_type)
    return provider


def _usable(providers) -> list[PaymentProvider]:
    return [p for p in providers if not missing_credentials(p.provider_type, p.credentials)]


def get_active_provider(mosque: Mosque) -> PaymentProvider | None:
    active = _usable(PaymentProvider.objects.filter(mosque=mosque, is_active=True))
    return active[0] if active else None


def payment_gateway_status(mosque: Mosque) -> dict[str, Any]:
    active = _usable(PaymentProvider.objects.filter(mosque=mosque, is_active=True))
    return {
        "has_active_provider": bool(active),
        "providers": [p.provider_type for p in active],
        "needs_setup": not active,
    }


def create_contribution_payment(contribution: KhairatContribution, redirect_url: str | None = None) -> dict[str, Any]:
    if contribution.payment_method != "online":
        raise InvalidStateError("Only online contributions can be paid through a payment gateway.")
    if contribution.status != "pending":
        raise InvalidStateError("This contribution is no longer awaiting payment.")

    if contribution.bill_id:
        # Hand back the bill already issued so a callback for it still matches.
        issued_by = PaymentProvider.objects.filter(
            mosque_id=contribution.mosque_id,
            provider_type=contribution.payment_provider,
        ).first()
        if issued_by is not None:
            logger.info(
                "Reusing %s bill %s for contribution %s",
                issued_by.provider_type,
                contribution.bill_id,
                contribution.pk,
            )
            return {
                "contribution_id": str(contribution.pk),
                "provider": issued_by.provider_type,
                "bill_id": contribution.bill_id,
                "payment_url": gateway_for(issued_by).payment_url(contribution.bill_id),
            }

    provider = get_active_provider(contribution.mosque)
    if provider is None:
        raise InvalidStateError("This mosque has not set up online payments yet.")

    callback_url = f"{settings.PUBLIC_BASE_URL}/api/payments/{provider.provider_type}/callback/"
    redirect_url = redirect_url or (
        f"{settings.FRONTEND_BASE_URL}/khairat/payment/return?contribution_id={contribution.pk}"
    )
    bill = gateway_for(provider).create_bill(
        amount=contribution.amount,
        name=contribution.payer_name,
        email=contribution.payer_email,
        mobile=contribution.payer_phone,
        description=f"Khairat {contribution.mosque.name}",
        callback_url=callback_url,
        redirect_url=redirect_url,
        reference=str(contribution.pk),
    )

    contribution.bill_id = bill["bill_id"]
    contribution.payment_provider = provider.provider_type
    contribution.save(update_fields=["bill_id", "payment_provider", "updated_at"])
    logger.info(
        "Created %s bill %s for contribution %s (RM%s)",
        provider.provider_type,
        bill["bill_id"],
        contribution.pk,
        contribution.amount,
    )
    return {
        "contribution_id": str(contribution.pk),
        "provider": provider.provider_type,
        "bill_id": bill["bill_id"],
        "payment_url": bill["payment_url"],
    }


def settle_contribution(contribution: KhairatContribution, status: str, reference: str | None = None) -> bool:
    """
    Move a pending contribution to ``completed`` or ``failed``. Repeated
    callbacks for an already settled contribution are ignored.
    """
    if status not in ("completed", "failed"):
        return False

    fields = {"status": status, "updated_at": timezone.now()}
    if status == "completed":
        fields["paid_at"] = timezone.now()
        fields["payment_reference"] = reference or contribution.bill_id
    updated = KhairatContribution.objects.filter(pk=contribution.pk, status="pending").update(**fields)
    if not updated:
        return False

    contribution.refresh_from_db()
    logger.info("Contribution %s %s via %s", contribution.pk, status, contribution.payment_provider)
    if status == "completed" and contribution.contributor_id:
        notify_user(
            contribution.contributor,
            title="Khairat Payment Received",
            message=f"Your khairat contribution of RM{contribution.amount} to {contribution.mosque.name} was received.",
            type="success",
            mosque=contribution.mosque,
            action_url="/khairat/contributions",
            metadata={"khairat_contribution_id": str(contribution.pk), "action": "payment_completed"},
        )
    return True


def handle_billplz_callback(payload: dict[str, Any], signature: str | None = None) -> KhairatContribution:
    bill_id = payload.get("id")
    if not bill_id:
        raise ValidationError({"id": "Missing bill ID."})

    PaymentLog.objects.create(provider="billplz", reference=bill_id, raw_payload=payload)

    contribution = (
        KhairatContribution.objects.select_related("mosque", "contributor")
        .filter(bill_id=bill_id, payment_provider="billplz")
        .first()
    )
    if contribution is None:
        raise NotFound("No contribution for this bill.")

    provider = PaymentProvider.objects.filter(mosque=contribution.mosque, provider_type="billplz").first()
    if provider is None:
        raise ValidationError({"x_signature": "Billplz is not configured for this mosque."})

    signature = signature or payload.get("x_signature")
    if not gateway_for(provider).verify_signature(payload, signature):
        logger.warning("Rejected Billplz callback for bill %s: bad signature", bill_id)
        raise ValidationError({"x_signature": "Invalid signature."})

    if str(payload.get("paid")).lower() == "true":
        settle_contribution(contribution, "completed", payload.get("transaction_id") or bill_id)
    elif payload.get("state") == "deleted":
        settle_contribution(contribution, "failed")
    return contribution


def handle_toyyibpay_callback(payload: dict[str, Any]) -> KhairatContribution:
    """
    ToyyibPay callbacks are unsigned, so the posted status is only a hint:
    the bill's transactions are fetched from the gateway and their status
    is what settles the contribution.
    """
    bill_code = payload.get("billcode")
    if not bill_code:
        raise ValidationError({"billcode": "Missing bill code."})

    PaymentLog.objects.create(provider="toyyibpay", reference=bill_code, raw_payload=payload)

    contribution = (
        KhairatContribution.objects.select_related("mosque", "contributor")
        .filter(bill_id=bill_code, payment_provider="toyyibpay")
        .first()
    )
    if contribution is None:
        raise NotFound("No contribution for this bill.")

    # order_id echoes the billExternalReferenceNo sent when the bill was created.
    if payload.get("order_id") != str(contribution.pk):
        raise ValidationError({"order_id": "Order ID does not match the bill."})

    provider = PaymentProvider.objects.filter(mosque=contribution.mosque, provider_type="toyyibpay").first()
    if provider is None:
        raise ValidationError({"billcode": "ToyyibPay is not configured for this mosque."})

    bill = gateway_for(provider).get_bill(bill_code)
    if bill.get("order_id") and bill["order_id"] != str(contribution.pk):
        raise ValidationError({"order_id": "Order ID does not match the bill."})

    claimed = ToyyibPayGateway.STATUS_MAP.get(str(payload.get("status_id") or payload.get("status")), "pending")
    if claimed != bill["status"]:
        logger.warning(
            "ToyyibPay callback for bill %s claimed %s but the gateway reports %s",
            bill_code,
            claimed,
            bill["status"],
        )
    settle_contribution(contribution, bill["status"], bill.get("reference"))
    return contribution


def reconcile_contribution(contribution: KhairatContribution) -> bool:
    provider = PaymentProvider.objects.filter(
        mosque_id=contribution.mosque_id,
        provider_type=contribution.payment_provider,
    ).first()
    if provider is None:
        return False
    bill = gateway_for(provider).get_bill(contribution.bill_id)
    return settle_contribution(contribution, bill["status"], bill.get("reference"))

