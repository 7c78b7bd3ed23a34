"""
Celery workers for custody.

- TimeoutSweeper: Auto-releases escrows past their timeout
- WithdrawalBatches: Settles operator payout batches

Usage:
    from custody.workers import (
        auto_release_escrow,
        process_withdrawal_batch,
        sweep_escrow_timeouts,
    )

    sweep_escrow_timeouts.delay()
    process_withdrawal_batch.delay([str(rid) for rid in ids], "BATCH-0612")
"""

from custody.workers.timeout_sweeper import auto_release_escrow, sweep_escrow_timeouts
from custody.workers.withdrawal_batches import process_withdrawal_batch

__all__ = [
    "auto_release_escrow",
    "process_withdrawal_batch",
    "sweep_escrow_timeouts",
]
