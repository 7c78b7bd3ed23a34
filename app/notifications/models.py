"""
Notification outbox model.

Custody and ride operations record a NotificationEvent in the same
transaction as the state change they announce. Delivery happens later in
a Celery task, so a slow or failing channel can never hold up or undo a
money movement.

Design Decisions:
    - Recipient uses CASCADE (events are worthless without the user)
    - Payload is free-form JSON built by the emitting service
    - Status tracks delivery only; the event itself is immutable

Usage:
    from notifications.models import NotificationEvent, NotificationKind

    NotificationEvent.objects.filter(
        recipient=user,
        kind=NotificationKind.FUNDS_RELEASED,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationKind(models.TextChoices):
    """Events users are told about."""

    # Escrow
    VAULT_SECURED = "vault_secured", "Payment secured in vault"
    FUNDS_RELEASED = "funds_released", "Funds released"
    PAYMENT_RECEIVED = "payment_received", "Payment received"
    DELIVERY_PAYMENT = "delivery_payment", "Delivery payment received"
    ESCROW_REFUNDED = "escrow_refunded", "Payment refunded"
    ESCROW_DISPUTED = "escrow_disputed", "Payment under dispute"

    # Withdrawals
    WITHDRAWAL_PENDING = "withdrawal_pending", "Withdrawal requested"
    WITHDRAWAL_PAID = "withdrawal_paid", "Withdrawal paid"
    WITHDRAWAL_REJECTED = "withdrawal_rejected", "Withdrawal rejected"

    # Rides
    DRIVER_ARRIVED = "driver_arrived", "Driver arrived"


class NotificationStatus(models.TextChoices):
    """
    Delivery status of an event.

    State Flow:
        PENDING -> SENT
        PENDING -> FAILED (backend raised)
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


class NotificationEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single notification waiting for or past delivery.

    Fields:
        recipient: User to notify
        kind: What happened
        payload: Data for rendering (ids, amounts, references)
        status: Delivery status
        attempts: Number of delivery attempts
        last_error: Message of the last failed attempt
        sent_at: When the backend accepted the event
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_events",
    )
    kind = models.CharField(
        max_length=32,
        choices=NotificationKind.choices,
        db_index=True,
    )
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=16,
        choices=NotificationStatus.choices,
        default=NotificationStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "-created_at"], name="notif_recipient_created_idx"),
            models.Index(fields=["status", "created_at"], name="notif_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.kind} -> {self.recipient_id} ({self.status})"
