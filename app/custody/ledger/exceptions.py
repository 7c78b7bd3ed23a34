"""
Ledger-specific exceptions for financial operations.

Exception Hierarchy:
    LedgerError (base)
    ├── AccountNotFound - Account lookup failures
    ├── InactiveAccount - Operations on inactive accounts
    └── InsufficientBalance - Debit would take a wallet below zero
                              (also a BusinessRuleError, HTTP 422)

Usage:
    from custody.ledger.exceptions import InsufficientBalance

    try:
        WithdrawalService.request_withdrawal(...)
    except InsufficientBalance as e:
        e.required, e.available
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, BusinessRuleError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class AccountNotFound(LedgerError):
    """Raised when a ledger account cannot be found."""

    default_error_code: str = "ACCOUNT_NOT_FOUND"
    http_status: int = 404


class InactiveAccount(LedgerError):
    """
    Raised when attempting to use an inactive account.

    Accounts can be deactivated but their history is preserved.
    """

    default_error_code: str = "INACTIVE_ACCOUNT"
    http_status: int = 409


class InsufficientBalance(LedgerError, BusinessRuleError):
    """
    Raised when an account has insufficient funds for a debit.

    Attributes:
        account_id: The UUID of the account with insufficient funds
        required: The amount (minor units) that was required
        available: The balance (minor units) observed when the debit was refused
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"
    http_status: int = 422

    def __init__(
        self,
        account_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.required = required
        self.available = available

        message = (
            f"Account {account_id} has insufficient balance: "
            f"required {required}, available {available}"
        )

        full_details = {
            "account_id": str(account_id),
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )
