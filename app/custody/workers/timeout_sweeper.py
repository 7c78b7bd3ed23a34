"""
Timeout sweeper for held escrows.

Tasks:
- sweep_escrow_timeouts: Periodic task that auto-releases escrows past
  their timeout_date
- auto_release_escrow: Retries one escrow whose release hit a store failure

Usage:
    # Scheduled every 15 minutes by celery-beat (see migrations)
    from custody.workers import sweep_escrow_timeouts

    sweep_escrow_timeouts.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.db import InterfaceError, OperationalError

from custody.exceptions import InvalidStateTransition, LockAcquisitionError
from custody.locks import DistributedLock
from custody.services import EscrowService

logger = logging.getLogger(__name__)


# Key shared by all sweep runs; only one sweep scans at a time
SWEEP_LOCK_KEY = "custody:escrow-timeout-sweep"

# Longer than a full batch takes; a crashed worker frees it after this
SWEEP_LOCK_TTL = 300


@shared_task(bind=True)
def sweep_escrow_timeouts(self) -> dict:
    """
    Auto-release held escrows whose timeout has passed.

    A second worker that finds the sweep lock taken returns immediately.
    Escrows that failed on a store error are queued one by one on
    auto_release_escrow, which retries with backoff.

    Returns:
        Dict with ``status`` and the released/skipped/failed counts
    """
    try:
        with DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False):
            report = EscrowService.sweep_timeouts(
                batch_size=settings.ESCROW_SWEEP_BATCH_SIZE,
            )
    except LockAcquisitionError:
        logger.info("Escrow timeout sweep already running, skipping")
        return {"status": "skipped"}

    for escrow_id in report.failed:
        auto_release_escrow.delay(escrow_id)

    return {"status": "completed", **report.to_dict()}


@shared_task(
    bind=True,
    autoretry_for=(OperationalError, InterfaceError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def auto_release_escrow(self, escrow_id: str) -> dict:
    """
    Auto-release a single escrow.

    Safe to run any number of times: an escrow that is no longer held
    (or not due yet) is reported and left alone.

    Returns:
        Dict with ``status`` of released or skipped and the escrow id
    """
    try:
        EscrowService.auto_release(escrow_id)
    except InvalidStateTransition as e:
        logger.info(
            "Escrow not eligible for auto-release",
            extra={"escrow_id": escrow_id, "error_code": e.error_code},
        )
        return {"status": "skipped", "escrow_id": escrow_id, "error_code": e.error_code}

    return {"status": "released", "escrow_id": escrow_id}
