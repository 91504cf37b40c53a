import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


@shared_task
def send_notification_email(notification_id: int) -> bool:
    notification = Notification.objects.select_related("user", "mosque").filter(pk=notification_id).first()
    if notification is None or notification.emailed_at is not None:
        return False

    email = notification.user.email
    if not email:
        return False

    body = notification.message
    if notification.action_url:
        body = f"{body}\n\n{settings.FRONTEND_BASE_URL.rstrip('/')}{notification.action_url}"

    send_mail(
        subject=notification.title,
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[email],
    )
    Notification.objects.filter(pk=notification.pk).update(emailed_at=timezone.now())
    logger.info("Emailed notification %s to %s", notification.pk, email)
    return True


@shared_task
def purge_read_notifications(days: int = 90) -> int:
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Notification.objects.filter(is_read=True, created_at__lt=cutoff).delete()
    return deleted
