"""
Celery tasks for notification delivery.

Tasks:
    deliver_notification: Hand a pending NotificationEvent to the backend

Design:
    - Tasks receive the event id (UUID string)
    - Re-running on a non-PENDING event is a no-op
    - A backend failure marks the event FAILED; database failures retry

Usage:
    from notifications.tasks import deliver_notification

    # Queued automatically by NotificationDispatcher.dispatch() after commit
    deliver_notification.delay(event_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import InterfaceError, OperationalError
from django.utils import timezone as django_timezone

from notifications.backends import get_backend
from notifications.models import NotificationEvent, NotificationStatus

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(OperationalError, InterfaceError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def deliver_notification(self, event_id: str) -> bool:
    """
    Deliver one notification event.

    Args:
        event_id: UUID string of the NotificationEvent

    Returns:
        True if sent or already handled, False if the backend failed
    """
    try:
        event = NotificationEvent.objects.get(id=event_id)
    except NotificationEvent.DoesNotExist:
        logger.warning(f"Notification event {event_id} not found")
        return True

    if event.status != NotificationStatus.PENDING:
        logger.info(f"Notification event {event_id} status is {event.status}, skipping")
        return True

    event.attempts += 1
    try:
        get_backend().send(event)
    except Exception as e:
        event.status = NotificationStatus.FAILED
        event.last_error = str(e)
        event.save(update_fields=["status", "last_error", "attempts", "updated_at"])
        logger.warning(
            f"Notification delivery failed for event {event_id}: {e}",
            extra={"notification_id": event_id, "kind": event.kind},
        )
        return False

    event.status = NotificationStatus.SENT
    event.sent_at = django_timezone.now()
    event.save(update_fields=["status", "sent_at", "attempts", "updated_at"])
    return True
