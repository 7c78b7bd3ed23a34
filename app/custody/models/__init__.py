"""
Custody domain models.

- EscrowTransaction: Order payment held until delivery is confirmed
- WithdrawalRequest: User request to move wallet funds to mobile money
- LedgerAccount / LedgerEntry: Ledger Store tables (see custody.ledger)
"""

from custody.ledger.models import LedgerAccount, LedgerEntry
from custody.models.escrow_transaction import EscrowTransaction
from custody.models.withdrawal_request import WithdrawalRequest

__all__ = [
    "EscrowTransaction",
    "LedgerAccount",
    "LedgerEntry",
    "WithdrawalRequest",
]
