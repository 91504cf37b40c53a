from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, transaction

from .models import Notification

logger = logging.getLogger(__name__)


def notify_user(
    user,
    title: str,
    message: str,
    type: str = "info",
    mosque=None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification | None:
    """
    Store an in-app notification and queue its email copy once the
    surrounding transaction commits.

    A failure to notify never undoes the caller's own write, so database
    errors are logged and ``None`` is returned.
    """
    if user is None:
        return None

    try:
        with transaction.atomic():
            notification = Notification.objects.create(
                user=user,
                mosque=mosque,
                title=title,
                message=message,
                type=type,
                action_url=action_url,
                metadata=metadata or {},
            )
    except DatabaseError:
        logger.exception("Failed to create notification %r for user %s", title, user.pk)
        return None

    transaction.on_commit(lambda: _queue_email(notification.pk))
    return notification


def _queue_email(notification_id: int) -> None:
    from .tasks import send_notification_email

    try:
        send_notification_email.delay(notification_id)
    except Exception:  # noqa: BLE001
        # The caller's write has already committed by now.
        logger.exception("Failed to queue email for notification %s", notification_id)
