"""
Celery configuration for the custody service.

Background work:
- sweep_escrow_timeouts: periodic auto-release of overdue escrows
  (schedule stored by django-celery-beat, see custody migrations)
- auto_release_escrow: single-escrow retry after a store failure
- process_withdrawal_batch: queued payout batch settlement
- deliver_notification: outbox delivery

Redis is both the message broker and the result backend. Tasks are
auto-discovered from the tasks.py module of every installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
