"""
Ledger models backing wallet balances and platform custody accounts.

This module defines the two tables of the Ledger Store:
- LedgerAccount: Holds monetary value (user wallets, escrow, revenue, clearing)
- LedgerEntry: Immutable record of a movement between two accounts

Every entry debits one account and credits another, so money held by the
platform can always be traced back to where it came from. Balances are
kept denormalized on LedgerAccount and are only ever changed by
LedgerService, inside the same transaction that writes the entry.

Usage:
    from custody.ledger.models import AccountType, LedgerAccount

    wallet = LedgerAccount.objects.get(
        type=AccountType.USER_WALLET,
        owner_id=user.id,
        currency="CDF",
    )
    wallet.balance  # minor units
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin


class AccountType(models.TextChoices):
    """
    Types of ledger accounts.

    Values:
        USER_WALLET: A user's spendable balance (seller, driver, buyer, partner)
        PLATFORM_ESCROW: Captured order payments awaiting release or refund
        PLATFORM_REVENUE: Platform commission and withdrawal fees
        PAYOUT_CLEARING: Funds reserved by pending withdrawal requests
        EXTERNAL_PAYMENTS: Money entering from the payment-capture collaborator
        EXTERNAL_MOBILE_MONEY: Money that left through mobile-money payouts
    """

    USER_WALLET = "user_wallet", "User Wallet"
    PLATFORM_ESCROW = "platform_escrow", "Platform Escrow"
    PLATFORM_REVENUE = "platform_revenue", "Platform Revenue"
    PAYOUT_CLEARING = "payout_clearing", "Payout Clearing"
    EXTERNAL_PAYMENTS = "external_payments", "External Payments"
    EXTERNAL_MOBILE_MONEY = "external_mobile_money", "External Mobile Money"


class EntryType(models.TextChoices):
    """
    Types of ledger entries.

    Values:
        PAYMENT_CAPTURED: Order payment placed into escrow
        ESCROW_RELEASED: Escrow share credited to seller or driver
        FEE_COLLECTED: Platform commission or withdrawal fee
        ESCROW_REFUNDED: Escrow returned to the buyer
        WITHDRAWAL_RESERVED: Wallet debited for a pending withdrawal
        WITHDRAWAL_PAID: Reserved funds paid out externally
        WITHDRAWAL_REVERSED: Reserved funds returned on rejection
        ADJUSTMENT: Manual correction
    """

    PAYMENT_CAPTURED = "payment_captured", "Payment Captured"
    ESCROW_RELEASED = "escrow_released", "Escrow Released"
    FEE_COLLECTED = "fee_collected", "Fee Collected"
    ESCROW_REFUNDED = "escrow_refunded", "Escrow Refunded"
    WITHDRAWAL_RESERVED = "withdrawal_reserved", "Withdrawal Reserved"
    WITHDRAWAL_PAID = "withdrawal_paid", "Withdrawal Paid"
    WITHDRAWAL_REVERSED = "withdrawal_reversed", "Withdrawal Reversed"
    ADJUSTMENT = "adjustment", "Adjustment"


class LedgerAccount(UUIDPrimaryKeyMixin, models.Model):
    """
    A ledger account that holds monetary value.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        type: Account category (see AccountType)
        owner_id: UUID of the owning user for wallets, NULL for platform accounts
        currency: ISO 4217 currency code
        balance: Current balance in minor units (denormalized)
        allow_negative: Whether balance can go negative (external accounts)
        is_active: Whether the account accepts new entries
        created_at: Timestamp when account was created

    Constraints:
        - Unique combination of (type, owner_id, currency)
        - balance >= 0 unless allow_negative
    """

    type = models.CharField(
        max_length=50,
        choices=AccountType.choices,
        help_text="Category of this account",
    )
    owner_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="UUID of the user that owns this account (wallets only)",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )
    balance = models.BigIntegerField(
        default=0,
        help_text="Current balance in minor units, maintained by LedgerService",
    )
    allow_negative = models.BooleanField(
        default=False,
        help_text="Whether this account can have a negative balance",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this account is active",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this account was created",
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["type", "owner_id", "currency"],
                name="unique_account_per_owner",
            ),
            # NULL owners never collide in the constraint above
            models.UniqueConstraint(
                fields=["type", "currency"],
                condition=Q(owner_id__isnull=True),
                name="unique_platform_account",
            ),
            models.CheckConstraint(
                condition=Q(allow_negative=True) | Q(balance__gte=0),
                name="ledger_account_balance_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["type", "currency"], name="ledger_acct_type_currency_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        if self.owner_id:
            return f"{self.get_type_display()} ({self.owner_id})"
        return self.get_type_display()

    def compute_balance(self) -> int:
        """
        Recompute the balance from entries.

        Used to audit the denormalized ``balance`` column; the two must
        always agree.
        """
        zero = models.Value(0, output_field=models.BigIntegerField())
        credits = self.credit_entries.aggregate(total=Coalesce(Sum("amount"), zero))
        debits = self.debit_entries.aggregate(total=Coalesce(Sum("amount"), zero))
        return credits["total"] - debits["total"]


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    A ledger entry recording movement of money between accounts.

    Entries are immutable once created. Corrections are made with new
    ADJUSTMENT entries.

    Fields:
        debit_account: Account money is taken from
        credit_account: Account money is added to
        amount: Amount in minor units (always positive)
        currency: ISO 4217 currency code
        entry_type: Category of this entry
        reference_type / reference_id: Business record that caused the movement
        description: Human-readable description
        metadata: Arbitrary JSON data
        created_by: Identifier of the service or operator that recorded it
        idempotency_key: Unique key, a retried operation reuses it

    Constraints:
        - amount must be positive
        - idempotency_key must be unique
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    debit_account = models.ForeignKey(
        LedgerAccount,
        on_delete=models.PROTECT,
        related_name="debit_entries",
        help_text="Account money is taken from",
    )
    credit_account = models.ForeignKey(
        LedgerAccount,
        on_delete=models.PROTECT,
        related_name="credit_entries",
        help_text="Account money is added to",
    )
    amount = models.PositiveBigIntegerField(
        help_text="Amount in minor units (always positive)",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )

    entry_type = models.CharField(
        max_length=50,
        choices=EntryType.choices,
        help_text="Category of this entry",
    )
    reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of the business record (escrow, withdrawal request)",
    )
    reference_type = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Type of the business record (e.g. 'escrow', 'withdrawal')",
    )

    description = models.TextField(
        null=True,
        blank=True,
        help_text="Human-readable description of this entry",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )

    created_by = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Identifier of service/operator that created this entry",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["reference_type", "reference_id"], name="ledger_entry_reference_idx"),
            models.Index(fields=["entry_type"], name="ledger_entry_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="ledger_entry_amount_positive",
            )
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.get_entry_type_display()}: {self.amount} {self.currency}"
