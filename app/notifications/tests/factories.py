"""
Factory Boy factories for notification models.

Usage:
    from notifications.tests.factories import NotificationEventFactory

    event = NotificationEventFactory(recipient=user)
    paid = NotificationEventFactory(kind=NotificationKind.WITHDRAWAL_PAID)
"""

import uuid

import factory

from authentication.tests.factories import UserFactory
from notifications.models import NotificationEvent, NotificationKind, NotificationStatus


class NotificationEventFactory(factory.django.DjangoModelFactory):
    """Pending PAYMENT_RECEIVED event."""

    class Meta:
        model = NotificationEvent

    recipient = factory.SubFactory(UserFactory)
    kind = NotificationKind.PAYMENT_RECEIVED
    payload = factory.LazyFunction(lambda: {"escrow_id": str(uuid.uuid4()), "amount": 95000})
    status = NotificationStatus.PENDING
    attempts = 0
