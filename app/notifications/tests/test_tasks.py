"""Tests for the deliver_notification task."""

import uuid

import pytest

from notifications.backends import LoggingBackend, get_backend
from notifications.models import NotificationEvent, NotificationStatus
from notifications.tasks import deliver_notification


def reload(event):
    return NotificationEvent.objects.get(pk=event.pk)


@pytest.mark.django_db
class TestDeliverNotification:
    def test_sends_pending_event(self, pending_event):
        result = deliver_notification.apply(args=[str(pending_event.id)]).get()

        event = reload(pending_event)
        assert result is True
        assert event.status == NotificationStatus.SENT
        assert event.attempts == 1
        assert event.sent_at is not None

    def test_backend_failure_marks_failed(self, pending_event, failing_backend):
        result = deliver_notification.apply(args=[str(pending_event.id)]).get()

        event = reload(pending_event)
        assert result is False
        assert event.status == NotificationStatus.FAILED
        assert event.last_error == "push gateway unreachable"
        assert event.attempts == 1

    def test_already_sent_is_skipped(self, sent_event, mocker):
        send = mocker.patch.object(LoggingBackend, "send")

        result = deliver_notification.apply(args=[str(sent_event.id)]).get()

        assert result is True
        send.assert_not_called()
        assert reload(sent_event).attempts == 1

    def test_missing_event(self, db):
        assert deliver_notification.apply(args=[str(uuid.uuid4())]).get() is True


def test_default_backend_is_logging(settings):
    settings.NOTIFICATION_BACKEND = "notifications.backends.LoggingBackend"

    assert isinstance(get_backend(), LoggingBackend)
