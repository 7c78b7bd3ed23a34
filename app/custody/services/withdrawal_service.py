"""
Withdrawal settlement service.

Users ask for wallet money to be paid out to mobile money. Operators pay
by hand, then record the provider reference here. The wallet is debited
when the request is created, so the same money can't be requested twice,
and the debit is reversed only when the request is rejected.

Ledger Flow:
    Request:  USER_WALLET[user] -> PAYOUT_CLEARING (amount)
    Paid:     PAYOUT_CLEARING -> EXTERNAL_MOBILE_MONEY (net_amount)
              PAYOUT_CLEARING -> PLATFORM_REVENUE (fee, if any)
    Rejected: PAYOUT_CLEARING -> USER_WALLET[user] (amount)

Usage:
    from custody.services import WithdrawalService

    request = WithdrawalService.request_withdrawal(
        user_id=driver.id,
        user_type="driver",
        amount=50000,
        method="mobile_money",
        payout_details={"provider": "mpesa", "phone": "+243810000000"},
    )

    outcome = WithdrawalService.mark_paid(request.id, admin_reference="MP240612.C55412")
    if outcome.already_processed:
        ...

    results = WithdrawalService.batch_mark_paid(ids, batch_reference="BATCH-0612")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, InterfaceError, OperationalError, transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce

from django_fsm import ConcurrentTransition

from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService

from custody.exceptions import DuplicateAdminReference, WithdrawalNotPending
from custody.ledger.models import AccountType, EntryType
from custody.ledger.services import LedgerService
from custody.ledger.types import Money, RecordEntryParams
from custody.models import WithdrawalRequest
from custody.state_machines import (
    MobileMoneyProvider,
    UserType,
    WithdrawalMethod,
    WithdrawalStatus,
)
from notifications.models import NotificationKind
from notifications.services import NotificationDispatcher

if TYPE_CHECKING:
    from typing import Any

    from django.db.models import QuerySet


REFERENCE_TYPE = "withdrawal"

# Errors worth retrying in a later batch run
RETRYABLE_ERRORS = (OperationalError, InterfaceError)


@dataclass
class SettlementOutcome:
    """
    Result of mark_paid / reject.

    Attributes:
        request: The withdrawal request after the call
        already_processed: True if the call found the request already in
            the requested final status and changed nothing
    """

    request: WithdrawalRequest
    already_processed: bool = False


@dataclass
class BatchItemResult:
    """
    Per-request outcome of batch_mark_paid.

    Attributes:
        request_id: Request the result refers to
        status: succeeded, already_processed, not_found or failed
        error_code: Machine-readable code for failed items
        error: Human-readable message for failed items
        retryable: True only for store failures
    """

    SUCCEEDED = "succeeded"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    FAILED = "failed"

    request_id: str
    status: str
    error_code: str | None = None
    error: str | None = None
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "status": self.status,
            "error_code": self.error_code,
            "error": self.error,
            "retryable": self.retryable,
        }


class WithdrawalService(BaseService):
    """
    Withdrawal request lifecycle and payout reconciliation.

    Every settlement call locks the request row, checks its status and
    moves the ledger money in the same transaction.
    """

    # ==========================================================================
    # Request
    # ==========================================================================

    @classmethod
    def request_withdrawal(
        cls,
        user_id: uuid.UUID,
        user_type: str,
        amount: int,
        method: str,
        payout_details: dict[str, Any] | None,
        currency: str | None = None,
    ) -> WithdrawalRequest:
        """
        Create a pending request and reserve the amount from the wallet.

        Args:
            user_id: User withdrawing
            user_type: client, driver, seller or partner
            amount: Amount in minor units
            method: mobile_money or kwenda_pay
            payout_details: ``provider`` and ``phone`` for mobile money
            currency: ISO 4217 code (DEFAULT_CURRENCY if None)

        Raises:
            ValidationError: Invalid amount, type, method or payout details
            InsufficientBalance: Wallet can't cover the amount
        """
        cls.require(user_id=user_id)
        currency = currency or settings.DEFAULT_CURRENCY
        payout_details = payout_details or {}

        if user_type not in UserType.values:
            raise ValidationError(
                f"Unknown user type '{user_type}'",
                details={"user_type": [f"Must be one of {', '.join(UserType.values)}."]},
            )
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(
                "Amount must be an integer in minor units",
                details={"amount": ["Must be an integer."]},
            )
        minimum = settings.WITHDRAWAL_MIN_AMOUNT
        if amount < max(minimum, 1):
            raise ValidationError(
                f"Amount must be at least {minimum}",
                error_code="AMOUNT_BELOW_MINIMUM",
                details={"amount": [f"Must be at least {minimum}."], "minimum": minimum},
            )
        if method not in WithdrawalMethod.values:
            raise ValidationError(
                f"Unknown withdrawal method '{method}'",
                details={"method": [f"Must be one of {', '.join(WithdrawalMethod.values)}."]},
            )

        provider = str(payout_details.get("provider") or "").strip()
        phone = str(payout_details.get("phone") or "").strip()
        if method == WithdrawalMethod.MOBILE_MONEY:
            errors = {}
            if provider not in MobileMoneyProvider.values:
                errors["provider"] = [
                    f"Must be one of {', '.join(MobileMoneyProvider.values)}."
                ]
            if not phone:
                errors["phone"] = ["This field is required."]
            if errors:
                raise ValidationError(
                    "Mobile money payouts need a provider and a phone number",
                    error_code="INVALID_PAYOUT_DETAILS",
                    details=errors,
                )
        else:
            provider = ""

        fee = cls.calculate_fee(amount)

        with cls.atomic():
            request = WithdrawalRequest.objects.create(
                user_id=user_id,
                user_type=user_type,
                amount=amount,
                fee=fee,
                net_amount=amount - fee,
                currency=currency,
                withdrawal_method=method,
                mobile_money_provider=provider,
                mobile_money_phone=phone,
            )
            wallet = LedgerService.get_or_create_wallet(user_id, currency=currency)
            clearing = LedgerService.get_or_create_account(
                AccountType.PAYOUT_CLEARING, currency=currency
            )
            LedgerService.record_entry(
                RecordEntryParams(
                    debit_account_id=wallet.id,
                    credit_account_id=clearing.id,
                    amount=amount,
                    entry_type=EntryType.WITHDRAWAL_RESERVED,
                    idempotency_key=f"withdrawal:{request.id}:reserve",
                    reference_id=request.id,
                    reference_type=REFERENCE_TYPE,
                    description="Funds reserved for withdrawal",
                    created_by=f"user:{user_id}",
                )
            )
            NotificationDispatcher.dispatch(
                user_id,
                NotificationKind.WITHDRAWAL_PENDING,
                cls._payload(request),
            )

        cls.get_logger().info(
            "Withdrawal requested",
            extra={
                "request_id": str(request.id),
                "user_id": str(user_id),
                "amount": amount,
                "fee": fee,
                "method": method,
            },
        )
        return request

    @staticmethod
    def calculate_fee(amount: int) -> int:
        """
        Fee withheld from a withdrawal, truncated to whole minor units.

        Example:
            # WITHDRAWAL_FEE_PERCENT = 2.5
            WithdrawalService.calculate_fee(10001)  # 250
        """
        percent = Decimal(str(settings.WITHDRAWAL_FEE_PERCENT))
        fee = (Decimal(amount) * percent / Decimal(100)).quantize(
            Decimal(1), rounding=ROUND_DOWN
        )
        return int(fee)

    # ==========================================================================
    # Settlement
    # ==========================================================================

    @classmethod
    def mark_paid(
        cls,
        request_id: uuid.UUID,
        admin_reference: str,
        notes: str | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> SettlementOutcome:
        """
        Record that a pending request was paid out.

        Calling again on a paid request is a no-op that reports
        ``already_processed``.

        Raises:
            ValidationError: Empty admin_reference
            NotFoundError: Unknown request
            DuplicateAdminReference: Reference used by another request
            WithdrawalNotPending: Request was rejected
        """
        cls.require(admin_reference=admin_reference)
        reference = admin_reference.strip()

        with cls.atomic():
            request = cls._lock(request_id)

            if request.status == WithdrawalStatus.PAID:
                cls.get_logger().info(
                    "Withdrawal already paid, nothing to do",
                    extra={"request_id": str(request.id)},
                )
                return SettlementOutcome(request=request, already_processed=True)
            cls._ensure_pending(request, "mark_paid")

            if (
                WithdrawalRequest.objects.filter(admin_reference=reference)
                .exclude(pk=request.pk)
                .exists()
            ):
                raise cls._duplicate_reference(request, reference)

            request.mark_paid(reference, notes=notes, actor_id=actor_id)
            try:
                with transaction.atomic():
                    cls._save(request, "mark_paid")
            except IntegrityError:
                raise cls._duplicate_reference(request, reference)

            cls._record_payout(request, created_by=f"admin:{actor_id}" if actor_id else "admin")
            NotificationDispatcher.dispatch(
                request.user_id,
                NotificationKind.WITHDRAWAL_PAID,
                cls._payload(request, admin_reference=reference),
            )

        cls.get_logger().info(
            "Withdrawal marked paid",
            extra={
                "request_id": str(request.id),
                "admin_reference": reference,
                "net_amount": request.net_amount,
            },
        )
        return SettlementOutcome(request=request)

    @classmethod
    def reject(
        cls,
        request_id: uuid.UUID,
        reason: str,
        actor_id: uuid.UUID | None = None,
    ) -> SettlementOutcome:
        """
        Reject a pending request and give the amount back to the wallet.

        Raises:
            ValidationError: Empty reason
            NotFoundError: Unknown request
            WithdrawalNotPending: Request was already paid
        """
        cls.require(reason=reason)
        reason = reason.strip()

        with cls.atomic():
            request = cls._lock(request_id)

            if request.status == WithdrawalStatus.REJECTED:
                return SettlementOutcome(request=request, already_processed=True)
            cls._ensure_pending(request, "reject")

            request.reject(reason, actor_id=actor_id)
            cls._save(request, "reject")

            wallet = LedgerService.get_or_create_wallet(request.user_id, currency=request.currency)
            clearing = LedgerService.get_or_create_account(
                AccountType.PAYOUT_CLEARING, currency=request.currency
            )
            LedgerService.record_entry(
                RecordEntryParams(
                    debit_account_id=clearing.id,
                    credit_account_id=wallet.id,
                    amount=request.amount,
                    entry_type=EntryType.WITHDRAWAL_REVERSED,
                    idempotency_key=f"withdrawal:{request.id}:reversal",
                    reference_id=request.id,
                    reference_type=REFERENCE_TYPE,
                    description="Withdrawal rejected, funds returned",
                    created_by=f"admin:{actor_id}" if actor_id else "admin",
                )
            )
            NotificationDispatcher.dispatch(
                request.user_id,
                NotificationKind.WITHDRAWAL_REJECTED,
                cls._payload(request, reason=reason),
            )

        cls.get_logger().info(
            "Withdrawal rejected",
            extra={"request_id": str(request.id), "amount": request.amount},
        )
        return SettlementOutcome(request=request)

    @classmethod
    def batch_mark_paid(
        cls,
        request_ids: list[uuid.UUID],
        batch_reference: str,
        notes: str | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> list[BatchItemResult]:
        """
        Mark several requests paid under one transfer batch.

        Each request is settled in its own transaction with the reference
        ``"{batch_reference}-{request_id}"``, so one bad request never
        blocks the others and a rerun only touches what is still pending.

        Returns:
            One BatchItemResult per distinct request id, in input order
        """
        cls.require(batch_reference=batch_reference)
        if not request_ids:
            raise ValidationError(
                "At least one request id is required",
                details={"request_ids": ["This list may not be empty."]},
            )
        batch_reference = batch_reference.strip()

        results: list[BatchItemResult] = []
        for request_id in dict.fromkeys(str(rid) for rid in request_ids):
            results.append(
                cls._settle_batch_item(request_id, batch_reference, notes, actor_id)
            )

        summary: dict[str, int] = {}
        for result in results:
            summary[result.status] = summary.get(result.status, 0) + 1
        cls.get_logger().info(
            f"Batch {batch_reference} settled",
            extra={"batch_reference": batch_reference, **summary},
        )
        return results

    @classmethod
    def _settle_batch_item(
        cls,
        request_id: str,
        batch_reference: str,
        notes: str | None,
        actor_id: uuid.UUID | None,
    ) -> BatchItemResult:
        try:
            outcome = cls.mark_paid(
                request_id,
                admin_reference=f"{batch_reference}-{request_id}",
                notes=notes,
                actor_id=actor_id,
            )
        except NotFoundError:
            return BatchItemResult(request_id=request_id, status=BatchItemResult.NOT_FOUND)
        except RETRYABLE_ERRORS as e:
            cls.get_logger().error(
                "Store failure while settling batch item",
                extra={"request_id": request_id, "batch_reference": batch_reference},
                exc_info=True,
            )
            return BatchItemResult(
                request_id=request_id,
                status=BatchItemResult.FAILED,
                error_code="STORE_UNAVAILABLE",
                error=str(e),
                retryable=True,
            )
        except BaseApplicationError as e:
            return BatchItemResult(
                request_id=request_id,
                status=BatchItemResult.FAILED,
                error_code=e.error_code,
                error=e.message,
            )

        return BatchItemResult(
            request_id=request_id,
            status=(
                BatchItemResult.ALREADY_PROCESSED
                if outcome.already_processed
                else BatchItemResult.SUCCEEDED
            ),
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    @classmethod
    def get_request(cls, request_id: uuid.UUID) -> WithdrawalRequest:
        try:
            return WithdrawalRequest.objects.get(pk=request_id)
        except WithdrawalRequest.DoesNotExist:
            raise NotFoundError(
                f"Withdrawal request {request_id} not found",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={"request_id": str(request_id)},
            )

    @classmethod
    def list_requests(
        cls,
        status: str | None = None,
        provider: str | None = None,
        user_type: str | None = None,
        max_amount: int | None = None,
        search: str | None = None,
    ) -> QuerySet[WithdrawalRequest]:
        """Admin console listing, newest first."""
        queryset = WithdrawalRequest.objects.select_related("user")
        if status:
            queryset = queryset.filter(status=status)
        if provider:
            queryset = queryset.filter(mobile_money_provider=provider)
        if user_type:
            queryset = queryset.filter(user_type=user_type)
        if max_amount is not None:
            queryset = queryset.filter(amount__lte=max_amount)
        return cls.apply_search(queryset, search)

    @staticmethod
    def apply_search(queryset: QuerySet, search: str | None) -> QuerySet:
        """Match phone, admin reference, user email, or the exact request id."""
        search = (search or "").strip()
        if not search:
            return queryset

        condition = (
            Q(mobile_money_phone__icontains=search)
            | Q(admin_reference__icontains=search)
            | Q(user__email__icontains=search)
        )
        try:
            condition |= Q(id=uuid.UUID(search))
        except ValueError:
            pass
        return queryset.filter(condition)

    @classmethod
    def get_statistics(cls) -> dict[str, Any]:
        """
        Counts and amounts per status for the admin console.

        Returns:
            Dict with ``total``, ``by_status`` counts, ``pending_amount``,
            ``paid_amount``, ``rejected_amount`` and ``fees_collected``
        """
        counts = dict(
            WithdrawalRequest.objects.order_by()
            .values("status")
            .annotate(count=Count("id"))
            .values_list("status", "count")
        )
        amounts = WithdrawalRequest.objects.aggregate(
            pending_amount=Coalesce(Sum("amount", filter=Q(status=WithdrawalStatus.PENDING)), 0),
            paid_amount=Coalesce(Sum("amount", filter=Q(status=WithdrawalStatus.PAID)), 0),
            rejected_amount=Coalesce(Sum("amount", filter=Q(status=WithdrawalStatus.REJECTED)), 0),
            fees_collected=Coalesce(Sum("fee", filter=Q(status=WithdrawalStatus.PAID)), 0),
        )
        return {
            "total": sum(counts.values()),
            "by_status": {status: counts.get(status, 0) for status in WithdrawalStatus.values},
            **amounts,
        }

    @classmethod
    def get_wallet_balance(cls, user_id: uuid.UUID, currency: str | None = None) -> Money:
        """Spendable balance of a user's wallet (zero if none exists)."""
        return LedgerService.get_wallet_balance(
            user_id, currency=currency or settings.DEFAULT_CURRENCY
        )

    # ==========================================================================
    # Internals
    # ==========================================================================

    @classmethod
    def _lock(cls, request_id: uuid.UUID) -> WithdrawalRequest:
        try:
            return WithdrawalRequest.objects.select_for_update().get(pk=request_id)
        except (WithdrawalRequest.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                f"Withdrawal request {request_id} not found",
                error_code="WITHDRAWAL_NOT_FOUND",
                details={"request_id": str(request_id)},
            )

    @classmethod
    def _ensure_pending(cls, request: WithdrawalRequest, action: str) -> None:
        if request.status == WithdrawalStatus.PENDING:
            return
        cls.get_logger().warning(
            f"Withdrawal {action} refused in status {request.status}",
            extra={"request_id": str(request.id), "status": request.status},
        )
        raise WithdrawalNotPending(
            f"Withdrawal request {request.id} is already {request.status}",
            details={"request_id": str(request.id), "action": action},
            current_status=request.status,
            already_processed=True,
        )

    @classmethod
    def _save(cls, request: WithdrawalRequest, action: str) -> None:
        try:
            request.save()
        except ConcurrentTransition:
            raise WithdrawalNotPending(
                f"Withdrawal request {request.id} was already processed",
                details={"request_id": str(request.id), "action": action},
                already_processed=True,
            )

    @staticmethod
    def _duplicate_reference(request: WithdrawalRequest, reference: str) -> DuplicateAdminReference:
        return DuplicateAdminReference(
            f"Admin reference '{reference}' is already used by another request",
            details={"request_id": str(request.id), "admin_reference": reference},
        )

    @classmethod
    def _record_payout(cls, request: WithdrawalRequest, created_by: str) -> None:
        clearing = LedgerService.get_or_create_account(
            AccountType.PAYOUT_CLEARING, currency=request.currency
        )
        entries = []
        if request.net_amount > 0:
            external = LedgerService.get_or_create_account(
                AccountType.EXTERNAL_MOBILE_MONEY, currency=request.currency
            )
            entries.append(
                RecordEntryParams(
                    debit_account_id=clearing.id,
                    credit_account_id=external.id,
                    amount=request.net_amount,
                    entry_type=EntryType.WITHDRAWAL_PAID,
                    idempotency_key=f"withdrawal:{request.id}:payout",
                    reference_id=request.id,
                    reference_type=REFERENCE_TYPE,
                    description=f"Withdrawal paid, reference {request.admin_reference}",
                    metadata={
                        "admin_reference": request.admin_reference,
                        "provider": request.mobile_money_provider,
                    },
                    created_by=created_by,
                )
            )
        if request.fee > 0:
            revenue = LedgerService.get_or_create_account(
                AccountType.PLATFORM_REVENUE, currency=request.currency
            )
            entries.append(
                RecordEntryParams(
                    debit_account_id=clearing.id,
                    credit_account_id=revenue.id,
                    amount=request.fee,
                    entry_type=EntryType.FEE_COLLECTED,
                    idempotency_key=f"withdrawal:{request.id}:fee",
                    reference_id=request.id,
                    reference_type=REFERENCE_TYPE,
                    description="Withdrawal fee",
                    created_by=created_by,
                )
            )
        LedgerService.record_entries(entries)

    @staticmethod
    def _payload(request: WithdrawalRequest, **extra: Any) -> dict[str, Any]:
        return {
            "request_id": str(request.id),
            "amount": request.amount,
            "net_amount": request.net_amount,
            "currency": request.currency,
            **extra,
        }
