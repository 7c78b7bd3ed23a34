"""
Notifications app: outbox of user-facing events.

This app provides:
- NotificationEvent model written in the same transaction as the change
- NotificationDispatcher for fire-and-forget dispatch
- deliver_notification Celery task and pluggable delivery backends

Usage:
    from notifications.services import NotificationDispatcher

    NotificationDispatcher.dispatch(
        recipient_id=user.id,
        kind="withdrawal_paid",
        payload={"request_id": str(request.id)},
    )
"""
