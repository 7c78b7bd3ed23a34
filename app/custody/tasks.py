"""
Celery tasks for custody.

The tasks are defined in custody.workers and re-exported here so Celery
autodiscover registers them.

Usage:
    from custody.tasks import sweep_escrow_timeouts

    sweep_escrow_timeouts.delay()
"""

from custody.workers import (  # noqa: F401
    auto_release_escrow,
    process_withdrawal_batch,
    sweep_escrow_timeouts,
)
