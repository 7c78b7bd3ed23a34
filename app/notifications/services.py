"""
Notification dispatch for custody and ride events.

NotificationDispatcher is fire-and-forget: callers inside a transition
call ``dispatch`` and carry on whatever happens. The event row is written
in a savepoint of the caller's transaction, so it only exists if the
transition commits, and the delivery task is queued after that commit.

Usage:
    from notifications.services import NotificationDispatcher
    from notifications.models import NotificationKind

    NotificationDispatcher.dispatch(
        recipient_id=escrow.seller_id,
        kind=NotificationKind.PAYMENT_RECEIVED,
        payload={"escrow_id": str(escrow.id), "amount": escrow.seller_amount},
    )
"""

from __future__ import annotations

import uuid
from functools import partial
from typing import TYPE_CHECKING

from django.db import transaction

from core.services import BaseService

from notifications.models import NotificationEvent
from notifications.tasks import deliver_notification

if TYPE_CHECKING:
    from typing import Any


class NotificationDispatcher(BaseService):
    """
    Record notification events and queue their delivery.

    Never raises: a failure to record or queue an event is logged and the
    caller's operation goes on unaffected.
    """

    @classmethod
    def dispatch(
        cls,
        recipient_id: uuid.UUID,
        kind: str,
        payload: dict[str, Any] | None = None,
    ) -> NotificationEvent | None:
        """
        Record an event for ``recipient_id`` and queue it after commit.

        Returns:
            The created event, or None if it could not be recorded
        """
        try:
            with transaction.atomic():
                event = NotificationEvent.objects.create(
                    recipient_id=recipient_id,
                    kind=kind,
                    payload=payload or {},
                )
            transaction.on_commit(
                partial(deliver_notification.delay, str(event.id)),
                robust=True,
            )
        except Exception:
            cls.get_logger().exception(
                "Failed to dispatch notification",
                extra={"recipient_id": str(recipient_id), "kind": kind},
            )
            return None

        return event
