"""
Custody services.

- EscrowService: Escrow creation, buyer confirmation, admin overrides, timeout sweep
- WithdrawalService: Withdrawal requests and payout reconciliation

Usage:
    from custody.services import EscrowService, WithdrawalService

    escrow = EscrowService.confirm_delivery(escrow_id, actor_id=user.id, confirmation=data)
    outcome = WithdrawalService.mark_paid(request_id, admin_reference="MP240612.C55412")
"""

from custody.services.escrow_service import EscrowService, SweepReport
from custody.services.withdrawal_service import (
    BatchItemResult,
    SettlementOutcome,
    WithdrawalService,
)

__all__ = [
    "BatchItemResult",
    "EscrowService",
    "SettlementOutcome",
    "SweepReport",
    "WithdrawalService",
]
