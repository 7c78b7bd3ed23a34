"""
Tests for notifications app.

- test_models.py: NotificationEvent model tests
- test_services.py: NotificationDispatcher tests
- test_tasks.py: deliver_notification task tests
"""
