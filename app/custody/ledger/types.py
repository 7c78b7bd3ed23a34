"""
Data types for ledger operations.

Types:
    Money: A monetary amount in minor units with currency
    RecordEntryParams: Parameters for recording a ledger entry

Usage:
    from custody.ledger.types import Money, RecordEntryParams

    params = RecordEntryParams(
        debit_account_id=escrow.id,
        credit_account_id=seller_wallet.id,
        amount=80000,
        entry_type=EntryType.ESCROW_RELEASED,
        idempotency_key=f"escrow:{escrow_id}:release:seller",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Money:
    """
    Represents a monetary amount.

    Amounts are integers in the smallest currency unit. Nothing in the
    custody engine uses floating point for money.

    Attributes:
        amount: Amount in minor units
        currency: ISO 4217 currency code

    Example:
        Money(amount=50000, currency="CDF")  # "50000 CDF"
    """

    amount: int
    currency: str = "CDF"

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.upper()}"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)


@dataclass
class RecordEntryParams:
    """
    Parameters for recording a ledger entry.

    Required Attributes:
        debit_account_id: UUID of the account being debited (money out)
        credit_account_id: UUID of the account being credited (money in)
        amount: Amount in minor units (must be positive)
        entry_type: Type of entry (see EntryType)
        idempotency_key: Unique key to prevent duplicate entries

    Optional Attributes:
        reference_id: UUID of related business record
        reference_type: Type of related record ('escrow', 'withdrawal')
        description: Human-readable description
        metadata: Arbitrary JSON-serializable data
        created_by: Identifier of the service/operator creating the entry
    """

    debit_account_id: uuid.UUID
    credit_account_id: uuid.UUID
    amount: int
    entry_type: str
    idempotency_key: str

    reference_id: uuid.UUID | None = None
    reference_type: str | None = None
    description: str | None = None
    metadata: dict[str, Any] | None = field(default_factory=dict)
    created_by: str | None = None

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError("amount must be an integer number of minor units")
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if self.debit_account_id == self.credit_account_id:
            raise ValueError("debit_account_id and credit_account_id must be different")
