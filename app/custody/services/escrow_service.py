"""
Escrow service: the only code that changes an EscrowTransaction.

Every transition follows the same pattern inside one
``transaction.atomic()`` block:

1. Lock the row (SELECT ... FOR UPDATE, or check_version for admins
   working from an older copy)
2. Refuse unless the row is in the required status
3. Run the django-fsm transition and save; the save is a conditional
   ``UPDATE ... WHERE status = <status read>``
4. Record the ledger entries for the money movement
5. Record the notification events (sent after commit)

If any step fails nothing is written. Two callers racing on the same
escrow serialize on the row lock; the loser sees EscrowNotHeld with
``already_processed=True`` and no money moves twice.

Ledger Flow:
    Creation:  EXTERNAL_PAYMENTS -> PLATFORM_ESCROW (total)
    Release:   PLATFORM_ESCROW -> USER_WALLET[seller] (seller_amount)
               PLATFORM_ESCROW -> USER_WALLET[driver] (driver_amount, if any)
               PLATFORM_ESCROW -> PLATFORM_REVENUE (platform_fee, if any)
    Refund:    PLATFORM_ESCROW -> USER_WALLET[buyer] (total)

Usage:
    from custody.services import EscrowService

    escrow = EscrowService.create_escrow(
        order_id=order.id,
        buyer=order.client,
        seller=order.vendor,
        total_amount=125000,
        driver=order.driver,
    )

    EscrowService.confirm_delivery(
        escrow.id,
        actor_id=buyer.id,
        confirmation={"confirmation_code": "K7Q2", "client_confirmed": True},
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, InterfaceError, OperationalError
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from django_fsm import ConcurrentTransition

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import BaseService

from custody.exceptions import (
    EscrowNotHeld,
    InvalidStateTransition,
    NotAuthorized,
)
from custody.ledger.models import AccountType, EntryType
from custody.ledger.services import LedgerService
from custody.ledger.types import RecordEntryParams
from custody.locks import check_version
from custody.models import EscrowTransaction
from custody.splits import default_split_policy
from custody.state_machines import (
    AdminAction,
    DisputeResolution,
    EscrowStatus,
    ReleaseReason,
)
from notifications.models import NotificationKind
from notifications.services import NotificationDispatcher

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from authentication.models import User
    from custody.splits import SplitPolicy


REFERENCE_TYPE = "escrow"


@dataclass
class SweepReport:
    """
    Outcome of one timeout sweep.

    Attributes:
        released: Escrows auto-released by this sweep
        skipped: Escrows that left HELD before the sweep reached them
        failed: Escrows whose release hit a store failure (safe to retry)
    """

    released: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "released": len(self.released),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "failed_ids": list(self.failed),
        }


class EscrowService(BaseService):
    """
    Escrow lifecycle operations.

    All methods are classmethods; no instance state is kept.

    Error Handling:
        - NotFoundError: unknown escrow
        - NotAuthorized: actor is not the buyer
        - EscrowNotHeld: escrow left HELD (already_processed when terminal)
        - InvalidStateTransition: action not valid from the current status
        - StaleRecordError: admin acted on an outdated version
    """

    # ==========================================================================
    # Creation
    # ==========================================================================

    @classmethod
    def create_escrow(
        cls,
        order_id: uuid.UUID,
        buyer: User,
        seller: User,
        total_amount: int,
        split_policy: SplitPolicy | None = None,
        driver: User | None = None,
        currency: str | None = None,
    ) -> EscrowTransaction:
        """
        Place a captured order payment in custody.

        Args:
            order_id: Commercial order the payment belongs to
            buyer: Paying user
            seller: User receiving the seller share
            total_amount: Captured amount in minor units
            split_policy: How to divide the total (settings default if None)
            driver: Delivery driver, if the order is delivered
            currency: ISO 4217 code (DEFAULT_CURRENCY if None)

        Returns:
            The new escrow in HELD status

        Raises:
            InvalidSplit: If the amounts can't be split exactly
            ConflictError: If an escrow already exists for the order
        """
        cls.require(order_id=order_id, buyer=buyer, seller=seller)
        currency = currency or settings.DEFAULT_CURRENCY
        policy = split_policy or default_split_policy()
        split = policy.split(total_amount, has_driver=driver is not None)

        now = timezone.now()
        try:
            with cls.atomic():
                escrow = EscrowTransaction.objects.create(
                    order_id=order_id,
                    buyer=buyer,
                    seller=seller,
                    driver=driver,
                    total_amount=total_amount,
                    seller_amount=split.seller_amount,
                    driver_amount=split.driver_amount,
                    platform_fee=split.platform_fee,
                    currency=currency,
                    held_at=now,
                    timeout_date=now + timedelta(days=settings.ESCROW_TIMEOUT_DAYS),
                )
                cls._record_capture(escrow)
                cls._notify_secured(escrow)
        except IntegrityError:
            if EscrowTransaction.objects.filter(order_id=order_id).exists():
                raise ConflictError(
                    f"An escrow already exists for order {order_id}",
                    error_code="ESCROW_ALREADY_EXISTS",
                    details={"order_id": str(order_id)},
                )
            raise

        cls.get_logger().info(
            "Escrow created",
            extra={
                "escrow_id": str(escrow.id),
                "order_id": str(order_id),
                "total_amount": total_amount,
                "seller_amount": split.seller_amount,
                "driver_amount": split.driver_amount,
                "platform_fee": split.platform_fee,
            },
        )
        return escrow

    # ==========================================================================
    # Buyer confirmation
    # ==========================================================================

    @classmethod
    def confirm_delivery(
        cls,
        escrow_id: uuid.UUID,
        actor_id: uuid.UUID,
        confirmation: dict[str, Any],
    ) -> EscrowTransaction:
        """
        Release the escrow after the buyer confirms delivery.

        Args:
            escrow_id: Escrow to release
            actor_id: User confirming; must be the buyer
            confirmation: ``confirmation_code``, ``client_confirmed`` and
                optional ``comments``

        Raises:
            ValidationError: Missing confirmation flag or code
            NotFoundError: Unknown escrow
            NotAuthorized: Actor is not the buyer
            EscrowNotHeld: Escrow already left HELD
        """
        confirmation = confirmation or {}
        code = str(confirmation.get("confirmation_code") or "").strip()
        if confirmation.get("client_confirmed") is not True:
            raise ValidationError(
                "The client must confirm the delivery",
                error_code="CONFIRMATION_REQUIRED",
                details={"client_confirmed": ["Must be true."]},
            )
        if not code:
            raise ValidationError(
                "A confirmation code is required",
                error_code="CONFIRMATION_CODE_REQUIRED",
                details={"confirmation_code": ["This field is required."]},
            )
        comments = str(confirmation.get("comments") or "").strip()

        with cls.atomic():
            escrow = cls._lock(escrow_id)
            if str(escrow.buyer_id) != str(actor_id):
                cls.get_logger().warning(
                    "Delivery confirmation refused: actor is not the buyer",
                    extra={"escrow_id": str(escrow_id), "actor_id": str(actor_id)},
                )
                raise NotAuthorized(
                    "Only the buyer can confirm delivery",
                    details={"escrow_id": str(escrow_id)},
                )
            cls._ensure_status(escrow, (EscrowStatus.HELD,), "confirm_delivery")

            escrow.release(
                ReleaseReason.BUYER_CONFIRMED,
                confirmation_code=code,
                comments=comments,
            )
            escrow.last_actor_id = actor_id
            cls._save(escrow, "confirm_delivery")
            cls._record_release(escrow, created_by=f"user:{actor_id}")
            cls._notify_released(escrow)

        cls.get_logger().info(
            "Escrow released on buyer confirmation",
            extra={"escrow_id": str(escrow.id), "status": escrow.status},
        )
        return escrow

    # ==========================================================================
    # Admin overrides
    # ==========================================================================

    @classmethod
    def admin_action(
        cls,
        escrow_id: uuid.UUID,
        action: str,
        actor_id: uuid.UUID | None = None,
        notes: str = "",
        resolution: str | None = None,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> EscrowTransaction:
        """
        Apply an operator override.

        Actions:
            force_release: HELD -> RELEASED
            force_refund: HELD -> REFUNDED
            open_dispute: HELD -> DISPUTED (reason required)
            resolve_dispute: DISPUTED -> RELEASED / REFUNDED (resolution required)

        Args:
            escrow_id: Escrow to act on
            action: One of AdminAction
            actor_id: Operator performing the action
            notes: Free-text notes stored on the escrow
            resolution: "release" or "refund" for resolve_dispute
            reason: Dispute reason for open_dispute (falls back to notes)
            expected_version: Version the operator saw; enforces optimistic locking

        Raises:
            ValidationError: Unknown action, missing reason or resolution
            EscrowNotHeld / InvalidStateTransition: Wrong status
            StaleRecordError: expected_version is outdated
        """
        if action not in AdminAction.values:
            raise ValidationError(
                f"Unknown admin action '{action}'",
                error_code="INVALID_ACTION",
                details={"action": [f"Must be one of {', '.join(AdminAction.values)}."]},
            )

        notes = (notes or "").strip()
        dispute_reason = ""
        if action == AdminAction.OPEN_DISPUTE:
            dispute_reason = (reason or notes or "").strip()
            if not dispute_reason:
                raise ValidationError(
                    "A reason is required to open a dispute",
                    error_code="DISPUTE_REASON_REQUIRED",
                    details={"reason": ["This field is required."]},
                )
        if action == AdminAction.RESOLVE_DISPUTE and resolution not in DisputeResolution.values:
            raise ValidationError(
                "Resolution must be 'release' or 'refund'",
                error_code="INVALID_RESOLUTION",
                details={"resolution": [f"Must be one of {', '.join(DisputeResolution.values)}."]},
            )

        allowed = (
            (EscrowStatus.DISPUTED,)
            if action == AdminAction.RESOLVE_DISPUTE
            else (EscrowStatus.HELD,)
        )

        with cls.atomic():
            if expected_version is not None:
                escrow = check_version(EscrowTransaction, escrow_id, expected_version)
            else:
                escrow = cls._lock(escrow_id)
            cls._ensure_status(escrow, allowed, action)

            if action == AdminAction.FORCE_RELEASE:
                escrow.release(ReleaseReason.ADMIN_FORCED)
            elif action == AdminAction.FORCE_REFUND:
                escrow.refund()
            elif action == AdminAction.OPEN_DISPUTE:
                escrow.open_dispute(dispute_reason)
            else:
                escrow.resolve_dispute(resolution)

            if notes:
                escrow.admin_notes = notes
            escrow.last_actor_id = actor_id
            cls._save(escrow, action)

            created_by = f"admin:{actor_id}" if actor_id else "admin"
            if escrow.status == EscrowStatus.RELEASED:
                cls._record_release(escrow, created_by=created_by)
                cls._notify_released(escrow)
            elif escrow.status == EscrowStatus.REFUNDED:
                cls._record_refund(escrow, created_by=created_by)
                cls._notify_refunded(escrow)
            else:
                cls._notify_disputed(escrow)

        cls.get_logger().info(
            f"Admin action {action} applied",
            extra={
                "escrow_id": str(escrow.id),
                "action": action,
                "status": escrow.status,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return escrow

    # ==========================================================================
    # Timeout sweep
    # ==========================================================================

    @classmethod
    def sweep_timeouts(
        cls,
        now: datetime | None = None,
        batch_size: int | None = None,
    ) -> SweepReport:
        """
        Auto-release held escrows whose timeout has passed.

        Each escrow is released in its own transaction through the same
        guarded path as a buyer confirmation, so a sweep racing with the
        buyer releases the funds once.

        Args:
            now: Reference time (defaults to timezone.now())
            batch_size: Maximum escrows per sweep (ESCROW_SWEEP_BATCH_SIZE)

        Returns:
            SweepReport listing released, skipped and failed escrow ids
        """
        now = now or timezone.now()
        batch_size = batch_size or settings.ESCROW_SWEEP_BATCH_SIZE
        report = SweepReport()

        for escrow_id in cls._due_escrow_ids(now, batch_size):
            try:
                cls.auto_release(escrow_id, now=now)
            except InvalidStateTransition as e:
                report.skipped.append(str(escrow_id))
                cls.get_logger().info(
                    "Escrow no longer due, skipped by sweep",
                    extra={"escrow_id": str(escrow_id), "error_code": e.error_code},
                )
            except (OperationalError, InterfaceError):
                report.failed.append(str(escrow_id))
                cls.get_logger().error(
                    "Store failure while auto-releasing escrow",
                    extra={"escrow_id": str(escrow_id)},
                    exc_info=True,
                )
            else:
                report.released.append(str(escrow_id))

        cls.get_logger().info(
            "Escrow timeout sweep complete",
            extra=report.to_dict(),
        )
        return report

    @classmethod
    def auto_release(
        cls,
        escrow_id: uuid.UUID,
        now: datetime | None = None,
    ) -> EscrowTransaction:
        """
        Release one escrow whose timeout has passed.

        Raises:
            EscrowNotHeld: Escrow already left HELD
            InvalidStateTransition: Timeout not reached yet
        """
        now = now or timezone.now()

        with cls.atomic():
            escrow = cls._lock(escrow_id)
            cls._ensure_status(escrow, (EscrowStatus.HELD,), "auto_release")
            if escrow.timeout_date > now:
                raise InvalidStateTransition(
                    f"Escrow {escrow_id} is not due before {escrow.timeout_date.isoformat()}",
                    error_code="ESCROW_NOT_DUE",
                    current_status=escrow.status,
                    details={"escrow_id": str(escrow_id)},
                )

            escrow.release(
                ReleaseReason.TIMEOUT,
                confirmation_code=f"AUTO-TIMEOUT-{int(now.timestamp())}",
                auto=True,
            )
            cls._save(escrow, "auto_release")
            cls._record_release(escrow, created_by="system:timeout")
            cls._notify_released(escrow)

        cls.get_logger().info(
            "Escrow auto-released after timeout",
            extra={"escrow_id": str(escrow.id), "timeout_date": escrow.timeout_date.isoformat()},
        )
        return escrow

    @classmethod
    def _due_escrow_ids(cls, now: datetime, batch_size: int) -> list[uuid.UUID]:
        return list(
            EscrowTransaction.objects.filter(
                status=EscrowStatus.HELD,
                timeout_date__lte=now,
            )
            .order_by("timeout_date")
            .values_list("id", flat=True)[:batch_size]
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    @classmethod
    def get_escrow(cls, escrow_id: uuid.UUID) -> EscrowTransaction:
        """
        Raises:
            NotFoundError: If the escrow doesn't exist
        """
        try:
            return EscrowTransaction.objects.get(pk=escrow_id)
        except (EscrowTransaction.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                f"Escrow {escrow_id} not found",
                error_code="ESCROW_NOT_FOUND",
                details={"escrow_id": str(escrow_id)},
            )

    @classmethod
    def get_by_order(cls, order_id: uuid.UUID) -> EscrowTransaction:
        """
        Raises:
            NotFoundError: If no escrow exists for the order
        """
        try:
            return EscrowTransaction.objects.get(order_id=order_id)
        except (EscrowTransaction.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                f"No escrow for order {order_id}",
                error_code="ESCROW_NOT_FOUND",
                details={"order_id": str(order_id)},
            )

    @classmethod
    def search(cls, query: str | None):
        """
        Admin lookup by escrow id or order id.

        An empty query returns every escrow; a query that isn't a UUID
        matches nothing.
        """
        return cls.apply_search(
            EscrowTransaction.objects.select_related("buyer", "seller", "driver"),
            query,
        )

    @staticmethod
    def apply_search(queryset, query: str | None):
        query = (query or "").strip()
        if not query:
            return queryset
        try:
            value = uuid.UUID(query)
        except ValueError:
            return queryset.none()
        return queryset.filter(Q(id=value) | Q(order_id=value))

    @classmethod
    def get_statistics(cls) -> dict[str, Any]:
        """
        Counts per status and amounts held for the admin dashboard.

        Returns:
            Dict with ``total``, ``by_status`` and the summed
            ``held_amount``, ``disputed_amount``, ``released_amount`` and
            ``refunded_amount``
        """
        counts = dict(
            EscrowTransaction.objects.order_by()
            .values("status")
            .annotate(count=Count("id"))
            .values_list("status", "count")
        )

        def _sum(status: str) -> Coalesce:
            return Coalesce(Sum("total_amount", filter=Q(status=status)), 0)

        amounts = EscrowTransaction.objects.aggregate(
            held_amount=_sum(EscrowStatus.HELD),
            disputed_amount=_sum(EscrowStatus.DISPUTED),
            released_amount=_sum(EscrowStatus.RELEASED),
            refunded_amount=_sum(EscrowStatus.REFUNDED),
        )

        return {
            "total": sum(counts.values()),
            "by_status": {status: counts.get(status, 0) for status in EscrowStatus.values},
            **amounts,
        }

    # ==========================================================================
    # Internals
    # ==========================================================================

    @classmethod
    def _lock(cls, escrow_id: uuid.UUID) -> EscrowTransaction:
        try:
            return EscrowTransaction.objects.select_for_update().get(pk=escrow_id)
        except (EscrowTransaction.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                f"Escrow {escrow_id} not found",
                error_code="ESCROW_NOT_FOUND",
                details={"escrow_id": str(escrow_id)},
            )

    @classmethod
    def _ensure_status(
        cls,
        escrow: EscrowTransaction,
        allowed: tuple[str, ...],
        action: str,
    ) -> None:
        """
        Refuse the action unless the escrow is in one of ``allowed``.

        Terminal escrows raise EscrowNotHeld with ESCROW_ALREADY_PROCESSED.
        """
        if escrow.status in allowed:
            return

        details = {"escrow_id": str(escrow.id), "action": action}
        cls.get_logger().warning(
            f"Escrow {action} refused in status {escrow.status}",
            extra={**details, "status": escrow.status},
        )

        if escrow.is_terminal:
            raise EscrowNotHeld(
                f"Escrow {escrow.id} was already {escrow.status}",
                error_code="ESCROW_ALREADY_PROCESSED",
                details=details,
                current_status=escrow.status,
                already_processed=True,
            )
        if EscrowStatus.HELD in allowed:
            raise EscrowNotHeld(
                f"Escrow {escrow.id} is {escrow.status}, not held",
                details=details,
                current_status=escrow.status,
            )
        raise InvalidStateTransition(
            f"Cannot {action} an escrow in status {escrow.status}",
            details=details,
            current_status=escrow.status,
        )

    @classmethod
    def _save(cls, escrow: EscrowTransaction, action: str) -> None:
        """Save a transitioned escrow, mapping a lost race to EscrowNotHeld."""
        try:
            escrow.save()
        except ConcurrentTransition:
            cls.get_logger().warning(
                "Escrow changed concurrently, transition dropped",
                extra={"escrow_id": str(escrow.id), "action": action},
            )
            raise EscrowNotHeld(
                f"Escrow {escrow.id} was already processed",
                error_code="ESCROW_ALREADY_PROCESSED",
                details={"escrow_id": str(escrow.id), "action": action},
                already_processed=True,
            )

    @classmethod
    def _record_capture(cls, escrow: EscrowTransaction) -> None:
        external = LedgerService.get_or_create_account(
            AccountType.EXTERNAL_PAYMENTS, currency=escrow.currency
        )
        custody_account = LedgerService.get_or_create_account(
            AccountType.PLATFORM_ESCROW, currency=escrow.currency
        )
        LedgerService.record_entry(
            RecordEntryParams(
                debit_account_id=external.id,
                credit_account_id=custody_account.id,
                amount=escrow.total_amount,
                entry_type=EntryType.PAYMENT_CAPTURED,
                idempotency_key=f"escrow:{escrow.id}:capture",
                reference_id=escrow.id,
                reference_type=REFERENCE_TYPE,
                description=f"Payment captured for order {escrow.order_id}",
                created_by="system:capture",
            )
        )

    @classmethod
    def _record_release(cls, escrow: EscrowTransaction, created_by: str) -> None:
        custody_account = LedgerService.get_or_create_account(
            AccountType.PLATFORM_ESCROW, currency=escrow.currency
        )
        shares = [
            ("seller", escrow.seller_id, escrow.seller_amount),
            ("driver", escrow.driver_id, escrow.driver_amount),
        ]

        entries = []
        for role, owner_id, amount in shares:
            if amount <= 0:
                continue
            wallet = LedgerService.get_or_create_wallet(owner_id, currency=escrow.currency)
            entries.append(
                RecordEntryParams(
                    debit_account_id=custody_account.id,
                    credit_account_id=wallet.id,
                    amount=amount,
                    entry_type=EntryType.ESCROW_RELEASED,
                    idempotency_key=f"escrow:{escrow.id}:release:{role}",
                    reference_id=escrow.id,
                    reference_type=REFERENCE_TYPE,
                    description=f"Escrow release to {role}",
                    metadata={"role": role, "release_reason": escrow.release_reason},
                    created_by=created_by,
                )
            )

        if escrow.platform_fee > 0:
            revenue = LedgerService.get_or_create_account(
                AccountType.PLATFORM_REVENUE, currency=escrow.currency
            )
            entries.append(
                RecordEntryParams(
                    debit_account_id=custody_account.id,
                    credit_account_id=revenue.id,
                    amount=escrow.platform_fee,
                    entry_type=EntryType.FEE_COLLECTED,
                    idempotency_key=f"escrow:{escrow.id}:release:fee",
                    reference_id=escrow.id,
                    reference_type=REFERENCE_TYPE,
                    description="Platform fee on escrow release",
                    created_by=created_by,
                )
            )

        LedgerService.record_entries(entries)

    @classmethod
    def _record_refund(cls, escrow: EscrowTransaction, created_by: str) -> None:
        custody_account = LedgerService.get_or_create_account(
            AccountType.PLATFORM_ESCROW, currency=escrow.currency
        )
        wallet = LedgerService.get_or_create_wallet(escrow.buyer_id, currency=escrow.currency)
        LedgerService.record_entry(
            RecordEntryParams(
                debit_account_id=custody_account.id,
                credit_account_id=wallet.id,
                amount=escrow.total_amount,
                entry_type=EntryType.ESCROW_REFUNDED,
                idempotency_key=f"escrow:{escrow.id}:refund",
                reference_id=escrow.id,
                reference_type=REFERENCE_TYPE,
                description="Escrow refunded to buyer",
                created_by=created_by,
            )
        )

    @staticmethod
    def _payload(escrow: EscrowTransaction, **extra: Any) -> dict[str, Any]:
        return {
            "escrow_id": str(escrow.id),
            "order_id": str(escrow.order_id),
            "currency": escrow.currency,
            **extra,
        }

    @classmethod
    def _notify_secured(cls, escrow: EscrowTransaction) -> None:
        payload = cls._payload(escrow, amount=escrow.total_amount)
        NotificationDispatcher.dispatch(escrow.buyer_id, NotificationKind.VAULT_SECURED, payload)
        NotificationDispatcher.dispatch(escrow.seller_id, NotificationKind.VAULT_SECURED, payload)

    @classmethod
    def _notify_released(cls, escrow: EscrowTransaction) -> None:
        NotificationDispatcher.dispatch(
            escrow.buyer_id,
            NotificationKind.FUNDS_RELEASED,
            cls._payload(escrow, amount=escrow.total_amount, auto_released=escrow.auto_released),
        )
        NotificationDispatcher.dispatch(
            escrow.seller_id,
            NotificationKind.PAYMENT_RECEIVED,
            cls._payload(escrow, amount=escrow.seller_amount),
        )
        if escrow.driver_id and escrow.driver_amount > 0:
            NotificationDispatcher.dispatch(
                escrow.driver_id,
                NotificationKind.DELIVERY_PAYMENT,
                cls._payload(escrow, amount=escrow.driver_amount),
            )

    @classmethod
    def _notify_refunded(cls, escrow: EscrowTransaction) -> None:
        NotificationDispatcher.dispatch(
            escrow.buyer_id,
            NotificationKind.ESCROW_REFUNDED,
            cls._payload(escrow, amount=escrow.total_amount),
        )

    @classmethod
    def _notify_disputed(cls, escrow: EscrowTransaction) -> None:
        payload = cls._payload(escrow, reason=escrow.dispute_reason)
        NotificationDispatcher.dispatch(escrow.buyer_id, NotificationKind.ESCROW_DISPUTED, payload)
        NotificationDispatcher.dispatch(escrow.seller_id, NotificationKind.ESCROW_DISPUTED, payload)
