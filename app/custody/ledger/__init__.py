"""
Ledger - the store behind wallet balances and platform custody accounts.

Every movement of money debits one account and credits another. Balances
are denormalized on LedgerAccount and only LedgerService changes them.

Public API:
    Models:
        LedgerAccount, LedgerEntry, AccountType, EntryType

    Service:
        LedgerService - all ledger operations (static methods)

    Types:
        Money, RecordEntryParams

    Exceptions:
        LedgerError, AccountNotFound, InsufficientBalance, InactiveAccount

Usage:
    from custody.ledger import LedgerService, InsufficientBalance

    balance = LedgerService.get_wallet_balance(user.id, currency="CDF")
"""

from .exceptions import (
    AccountNotFound,
    InactiveAccount,
    InsufficientBalance,
    LedgerError,
)
from .models import AccountType, EntryType, LedgerAccount, LedgerEntry
from .services import LedgerService
from .types import Money, RecordEntryParams

__all__ = [
    "LedgerAccount",
    "LedgerEntry",
    "AccountType",
    "EntryType",
    "LedgerService",
    "Money",
    "RecordEntryParams",
    "LedgerError",
    "AccountNotFound",
    "InsufficientBalance",
    "InactiveAccount",
]
