"""
Background settlement of withdrawal payout batches.

Operators upload the list of requests they paid in one mobile-money
transfer batch; the API queues this task instead of settling a large batch
inside the request cycle.

Tasks:
- process_withdrawal_batch: Mark requests paid, retrying store failures
"""

from __future__ import annotations

import logging

from celery import shared_task

from custody.services import BatchItemResult, WithdrawalService

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    retry_backoff=True,
    retry_backoff_max=300,
    acks_late=True,
    max_retries=3,
)
def process_withdrawal_batch(
    self,
    request_ids: list[str],
    batch_reference: str,
    notes: str | None = None,
    actor_id: str | None = None,
) -> dict:
    """
    Mark a batch of withdrawal requests paid.

    Items that failed with a store error are retried later, alone, with
    the same batch reference; items already paid by an earlier attempt
    report already_processed.

    Returns:
        Dict of counts per item status and the ids still failing
    """
    results = WithdrawalService.batch_mark_paid(
        request_ids,
        batch_reference=batch_reference,
        notes=notes,
        actor_id=actor_id,
    )

    summary: dict[str, int] = {}
    for result in results:
        summary[result.status] = summary.get(result.status, 0) + 1

    retry_ids = [
        r.request_id
        for r in results
        if r.status == BatchItemResult.FAILED and r.retryable
    ]
    if retry_ids and self.request.retries < self.max_retries:
        logger.warning(
            f"Retrying {len(retry_ids)} withdrawal(s) from batch {batch_reference}",
            extra={"batch_reference": batch_reference, "retry_ids": retry_ids},
        )
        raise self.retry(
            args=[retry_ids, batch_reference],
            kwargs={"notes": notes, "actor_id": actor_id},
        )

    return {
        "batch_reference": batch_reference,
        "counts": summary,
        "failed_ids": [r.request_id for r in results if r.status == BatchItemResult.FAILED],
    }
