import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.khairat.models import KhairatContribution
from core.exceptions import ProviderConnectionError

from .services import reconcile_contribution

logger = logging.getLogger(__name__)


@shared_task
def reconcile_pending_contributions() -> int:
    """
    Ask the gateway about online contributions whose callback never arrived.
    """
    cutoff = timezone.now() - timedelta(minutes=settings.PAYMENT_RECONCILE_AFTER_MINUTES)
    pending = KhairatContribution.objects.select_related("mosque", "contributor").filter(
        payment_method="online",
        status="pending",
        bill_id__isnull=False,
        created_at__lte=cutoff,
    )

    settled = 0
    for contribution in pending:
        try:
            if reconcile_contribution(contribution):
                settled += 1
        except ProviderConnectionError as exc:
            logger.warning("Could not reconcile contribution %s: %s", contribution.pk, exc.detail)
    logger.info("Reconciled %s pending contributions", settled)
    return settled
