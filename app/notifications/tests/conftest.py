"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(user, pending_event):
        deliver_notification.apply(args=[str(pending_event.id)]).get()
"""

import pytest

from authentication.tests.factories import UserFactory
from notifications.models import NotificationStatus
from notifications.tests.factories import NotificationEventFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a user to receive notifications."""
    return UserFactory()


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def pending_event(user):
    return NotificationEventFactory(recipient=user)


@pytest.fixture
def sent_event(user):
    return NotificationEventFactory(recipient=user, status=NotificationStatus.SENT, attempts=1)


# =============================================================================
# Backend Fixtures
# =============================================================================


class FailingBackend:
    """Backend whose channel is down."""

    def send(self, event):
        raise ConnectionError("push gateway unreachable")


@pytest.fixture
def failing_backend(settings):
    settings.NOTIFICATION_BACKEND = "notifications.tests.conftest.FailingBackend"
