"""
Delivery backends for notification events.

A backend is any class with a ``send(event)`` method. The task picks the
class named by the NOTIFICATION_BACKEND setting. Raising from ``send``
marks the event as failed.

Backends:
    LoggingBackend: Writes the event to the log (default)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from notifications.models import NotificationEvent

logger = logging.getLogger(__name__)


class LoggingBackend:
    """Log each event instead of pushing it to a device."""

    def send(self, event: NotificationEvent) -> None:
        logger.info(
            f"Notification {event.kind} for user {event.recipient_id}",
            extra={
                "notification_id": str(event.id),
                "kind": event.kind,
                "recipient_id": str(event.recipient_id),
                "payload": event.payload,
            },
        )


def get_backend():
    """Instantiate the configured backend."""
    return import_string(settings.NOTIFICATION_BACKEND)()
