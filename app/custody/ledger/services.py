"""
Ledger service layer for financial operations.

All balance changes go through LedgerService. Engines call it from inside
their own ``transaction.atomic()`` block so a wallet debit or credit
commits or rolls back together with the status change that caused it.

Usage:
    from custody.ledger.services import LedgerService

    wallet = LedgerService.get_or_create_wallet(user.id, currency="CDF")
    LedgerService.record_entries([
        RecordEntryParams(
            debit_account_id=wallet.id,
            credit_account_id=clearing.id,
            amount=50000,
            entry_type=EntryType.WITHDRAWAL_RESERVED,
            idempotency_key=f"withdrawal:{request.id}:reserve",
        ),
    ])
"""

from __future__ import annotations

import logging
import uuid

from django.db import IntegrityError, transaction
from django.db.models import F, Q

from .exceptions import AccountNotFound, InactiveAccount, InsufficientBalance
from .models import AccountType, LedgerAccount, LedgerEntry
from .types import Money, RecordEntryParams

logger = logging.getLogger(__name__)

# Accounts that represent the outside world and may go negative
EXTERNAL_ACCOUNT_TYPES = frozenset(
    {
        AccountType.EXTERNAL_PAYMENTS,
        AccountType.EXTERNAL_MOBILE_MONEY,
    }
)


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Atomic transactions for multi-entry operations
    - Idempotency via unique keys (safe to retry)
    - Guarded debits: ``UPDATE ... WHERE balance >= amount``
    - Account locking in primary-key order to prevent deadlocks

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def get_or_create_account(
        account_type: AccountType | str,
        owner_id: uuid.UUID | None = None,
        currency: str = "CDF",
    ) -> LedgerAccount:
        """
        Get existing account or create new one.

        External accounts are created with allow_negative=True.

        Args:
            account_type: Type of account (e.g., USER_WALLET, PLATFORM_ESCROW)
            owner_id: UUID of the owning user (wallets only)
            currency: ISO 4217 currency code

        Returns:
            The existing or newly created LedgerAccount
        """
        try:
            with transaction.atomic():
                account, _ = LedgerAccount.objects.get_or_create(
                    type=account_type,
                    owner_id=owner_id,
                    currency=currency,
                    defaults={
                        "allow_negative": account_type in EXTERNAL_ACCOUNT_TYPES,
                    },
                )
        except IntegrityError:
            # Created concurrently by another transaction
            account = LedgerAccount.objects.get(
                type=account_type,
                owner_id=owner_id,
                currency=currency,
            )
        return account

    @staticmethod
    def get_or_create_wallet(owner_id: uuid.UUID, currency: str = "CDF") -> LedgerAccount:
        """Get or create the USER_WALLET account of a user."""
        return LedgerService.get_or_create_account(
            AccountType.USER_WALLET,
            owner_id=owner_id,
            currency=currency,
        )

    @staticmethod
    def get_account(account_id: uuid.UUID) -> LedgerAccount:
        """
        Get account by ID.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        try:
            return LedgerAccount.objects.get(id=account_id)
        except LedgerAccount.DoesNotExist:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    @staticmethod
    def get_wallet_balance(owner_id: uuid.UUID, currency: str = "CDF") -> Money:
        """
        Get a user's wallet balance.

        A user without a wallet has a zero balance; no account is created.
        """
        balance = (
            LedgerAccount.objects.filter(
                type=AccountType.USER_WALLET,
                owner_id=owner_id,
                currency=currency,
            )
            .values_list("balance", flat=True)
            .first()
        )
        return Money(amount=balance or 0, currency=currency)

    @staticmethod
    def get_balance(account_id: uuid.UUID) -> Money:
        """
        Get current balance for an account.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        account = LedgerService.get_account(account_id)
        return Money(amount=account.balance, currency=account.currency)

    @staticmethod
    def record_entry(params: RecordEntryParams) -> LedgerEntry:
        """
        Record a single ledger entry.

        Idempotent - safe to call multiple times with the same idempotency_key.
        """
        return LedgerService.record_entries([params])[0]

    @staticmethod
    def record_entries(entries: list[RecordEntryParams]) -> list[LedgerEntry]:
        """
        Record multiple ledger entries atomically.

        All entries succeed or all fail. Entries are processed in order, so
        a credit earlier in the batch can fund a debit later in the batch.
        An entry whose idempotency_key already exists is returned unchanged
        and moves no money.

        Returns:
            List of created or existing LedgerEntry objects

        Raises:
            AccountNotFound: If any account doesn't exist
            InactiveAccount: If any account is inactive
            InsufficientBalance: If a non-negative account would go below zero
        """
        if not entries:
            return []

        results: list[LedgerEntry] = []

        with transaction.atomic():
            account_ids: set[uuid.UUID] = set()
            for params in entries:
                account_ids.add(params.debit_account_id)
                account_ids.add(params.credit_account_id)

            # Lock accounts in consistent order to prevent deadlocks
            accounts = {
                acc.id: acc
                for acc in LedgerAccount.objects.filter(id__in=account_ids)
                .select_for_update()
                .order_by("id")
            }

            for account_id in account_ids:
                if account_id not in accounts:
                    raise AccountNotFound(
                        f"Account {account_id} not found",
                        details={"account_id": str(account_id)},
                    )

            for params in entries:
                existing = LedgerEntry.objects.filter(
                    idempotency_key=params.idempotency_key
                ).first()
                if existing is not None:
                    logger.info(
                        "Ledger entry already recorded, skipping",
                        extra={"idempotency_key": params.idempotency_key},
                    )
                    results.append(existing)
                    continue

                debit_account = accounts[params.debit_account_id]
                credit_account = accounts[params.credit_account_id]
                LedgerService._ensure_active(debit_account)
                LedgerService._ensure_active(credit_account)

                entry = LedgerService._create_entry(params, debit_account, credit_account)
                LedgerService._apply_debit(debit_account, params.amount)
                LedgerAccount.objects.filter(pk=credit_account.pk).update(
                    balance=F("balance") + params.amount
                )
                results.append(entry)

        return results

    @staticmethod
    def _ensure_active(account: LedgerAccount) -> None:
        if not account.is_active:
            raise InactiveAccount(
                f"Account {account.id} is inactive",
                details={"account_id": str(account.id)},
            )

    @staticmethod
    def _create_entry(
        params: RecordEntryParams,
        debit_account: LedgerAccount,
        credit_account: LedgerAccount,
    ) -> LedgerEntry:
        return LedgerEntry.objects.create(
            idempotency_key=params.idempotency_key,
            debit_account=debit_account,
            credit_account=credit_account,
            amount=params.amount,
            currency=debit_account.currency,
            entry_type=params.entry_type,
            reference_id=params.reference_id,
            reference_type=params.reference_type,
            description=params.description,
            metadata=params.metadata or {},
            created_by=params.created_by,
        )

    @staticmethod
    def _apply_debit(account: LedgerAccount, amount: int) -> None:
        """
        Debit an account with a conditional update.

        For accounts that may not go negative the UPDATE only matches
        when the stored balance covers the amount, so the check and the
        write are one statement.

        Raises:
            InsufficientBalance: If no row matched
        """
        queryset = LedgerAccount.objects.filter(pk=account.pk)
        if not account.allow_negative:
            queryset = queryset.filter(balance__gte=amount)

        updated = queryset.update(balance=F("balance") - amount)
        if updated == 0:
            available = (
                LedgerAccount.objects.filter(pk=account.pk)
                .values_list("balance", flat=True)
                .first()
            )
            logger.warning(
                "Debit refused: insufficient balance",
                extra={
                    "account_id": str(account.pk),
                    "required": amount,
                    "available": available,
                },
            )
            raise InsufficientBalance(
                account_id=account.pk,
                required=amount,
                available=available or 0,
            )

    @staticmethod
    def get_entries_for_account(
        account_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """Get entries where account is debited or credited, newest first."""
        return list(
            LedgerEntry.objects.filter(
                Q(debit_account_id=account_id) | Q(credit_account_id=account_id)
            ).order_by("-created_at")[offset : offset + limit]
        )

    @staticmethod
    def get_entries_by_reference(
        reference_type: str,
        reference_id: uuid.UUID,
    ) -> list[LedgerEntry]:
        """
        Get all entries for a given business record, oldest first.

        Useful for auditing all money moved by one escrow or withdrawal.
        """
        return list(
            LedgerEntry.objects.filter(
                reference_type=reference_type,
                reference_id=reference_id,
            ).order_by("created_at")
        )
