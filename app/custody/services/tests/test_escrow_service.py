"""
Tests for EscrowService.

Balances are checked through the ledger after every money movement:
the escrow account must return to zero once an escrow reaches a
terminal status, and no share is ever credited twice.
"""

import uuid
from datetime import timedelta

import pytest
from django.db import OperationalError
from django.utils import timezone
from freezegun import freeze_time

from authentication.tests.factories import UserFactory
from core.exceptions import ConflictError, NotFoundError, ValidationError
from custody.exceptions import (
    EscrowNotHeld,
    InvalidSplit,
    InvalidStateTransition,
    NotAuthorized,
    StaleRecordError,
)
from custody.ledger.models import AccountType, EntryType, LedgerEntry
from custody.ledger.services import LedgerService
from custody.models import EscrowTransaction
from custody.services import EscrowService
from custody.splits import FixedSplitPolicy
from custody.state_machines import (
    AdminAction,
    DisputeResolution,
    EscrowStatus,
    ReleaseReason,
)
from custody.tests.factories import EscrowTransactionFactory, create_held_escrow
from notifications.models import NotificationEvent, NotificationKind

CONFIRMATION = {"confirmation_code": "K7Q2", "client_confirmed": True, "comments": "Merci"}


def wallet_balance(user) -> int:
    return LedgerService.get_wallet_balance(user.id, currency="CDF").amount


def platform_balance(account_type) -> int:
    return LedgerService.get_or_create_account(account_type, currency="CDF").balance


def notified(user, kind) -> bool:
    return NotificationEvent.objects.filter(recipient=user, kind=kind).exists()


# =============================================================================
# Creation
# =============================================================================


@pytest.mark.django_db
class TestCreateEscrow:
    def test_default_split_without_driver(self, buyer, seller):
        escrow = create_held_escrow(buyer=buyer, seller=seller, total_amount=100000)

        assert escrow.status == EscrowStatus.HELD
        assert escrow.seller_amount == 95000
        assert escrow.driver_amount == 0
        assert escrow.platform_fee == 5000
        assert escrow.currency == "CDF"
        assert escrow.timeout_date == escrow.held_at + timedelta(days=7)

    def test_default_split_with_driver(self, buyer, seller, driver):
        escrow = create_held_escrow(buyer=buyer, seller=seller, driver=driver, total_amount=100000)

        assert (escrow.seller_amount, escrow.driver_amount, escrow.platform_fee) == (
            80000,
            15000,
            5000,
        )

    def test_capture_moves_money_into_escrow_account(self, held_escrow):
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 100000
        assert platform_balance(AccountType.EXTERNAL_PAYMENTS) == -100000

        entries = LedgerService.get_entries_by_reference("escrow", held_escrow.id)
        assert [e.entry_type for e in entries] == [EntryType.PAYMENT_CAPTURED]

    def test_notifies_buyer_and_seller(self, held_escrow, buyer, seller):
        assert notified(buyer, NotificationKind.VAULT_SECURED)
        assert notified(seller, NotificationKind.VAULT_SECURED)

    def test_fixed_split(self, buyer, seller, driver):
        escrow = create_held_escrow(
            buyer=buyer,
            seller=seller,
            driver=driver,
            total_amount=20000,
            split_policy=FixedSplitPolicy(seller_amount=15000, driver_amount=4000, platform_fee=1000),
        )

        assert escrow.driver_amount == 4000

    def test_invalid_split_creates_nothing(self, buyer, seller):
        with pytest.raises(InvalidSplit):
            create_held_escrow(
                buyer=buyer,
                seller=seller,
                total_amount=20000,
                split_policy=FixedSplitPolicy(seller_amount=19000, platform_fee=999),
            )

        assert EscrowTransaction.objects.count() == 0
        assert LedgerEntry.objects.count() == 0

    def test_duplicate_order_rejected(self, held_escrow, buyer, seller):
        with pytest.raises(ConflictError) as exc_info:
            create_held_escrow(buyer=buyer, seller=seller, order_id=held_escrow.order_id)

        assert exc_info.value.error_code == "ESCROW_ALREADY_EXISTS"
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 100000

    def test_custom_currency(self, buyer, seller):
        escrow = create_held_escrow(buyer=buyer, seller=seller, total_amount=500, currency="USD")

        assert escrow.currency == "USD"
        assert LedgerService.get_or_create_account(
            AccountType.PLATFORM_ESCROW, currency="USD"
        ).balance == 500

    @freeze_time("2026-03-01 10:00:00")
    def test_timeout_uses_setting(self, buyer, seller, settings):
        settings.ESCROW_TIMEOUT_DAYS = 3

        escrow = create_held_escrow(buyer=buyer, seller=seller)

        assert escrow.timeout_date.isoformat() == "2026-03-04T10:00:00+00:00"


# =============================================================================
# Buyer confirmation
# =============================================================================


@pytest.mark.django_db
class TestConfirmDelivery:
    def test_release_credits_seller_and_platform(self, held_escrow, buyer, seller):
        escrow = EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert escrow.status == EscrowStatus.RELEASED
        assert escrow.release_reason == ReleaseReason.BUYER_CONFIRMED
        assert escrow.confirmation_code == "K7Q2"
        assert escrow.client_comments == "Merci"
        assert escrow.last_actor_id == buyer.id
        assert wallet_balance(seller) == 95000
        assert platform_balance(AccountType.PLATFORM_REVENUE) == 5000
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 0

    def test_release_credits_driver(self, delivery_escrow, buyer, seller, driver):
        EscrowService.confirm_delivery(delivery_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert wallet_balance(seller) == 80000
        assert wallet_balance(driver) == 15000
        assert notified(driver, NotificationKind.DELIVERY_PAYMENT)

    def test_release_notifications(self, held_escrow, buyer, seller):
        EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert notified(buyer, NotificationKind.FUNDS_RELEASED)
        assert notified(seller, NotificationKind.PAYMENT_RECEIVED)

    def test_only_buyer_can_confirm(self, held_escrow, seller):
        with pytest.raises(NotAuthorized) as exc_info:
            EscrowService.confirm_delivery(held_escrow.id, actor_id=seller.id, confirmation=CONFIRMATION)

        assert exc_info.value.http_status == 403
        assert EscrowTransaction.objects.get(pk=held_escrow.pk).status == EscrowStatus.HELD
        assert wallet_balance(seller) == 0

    def test_requires_client_confirmed(self, held_escrow, buyer):
        with pytest.raises(ValidationError) as exc_info:
            EscrowService.confirm_delivery(
                held_escrow.id,
                actor_id=buyer.id,
                confirmation={"confirmation_code": "K7Q2", "client_confirmed": False},
            )

        assert exc_info.value.error_code == "CONFIRMATION_REQUIRED"

    def test_requires_confirmation_code(self, held_escrow, buyer):
        with pytest.raises(ValidationError) as exc_info:
            EscrowService.confirm_delivery(
                held_escrow.id,
                actor_id=buyer.id,
                confirmation={"confirmation_code": "   ", "client_confirmed": True},
            )

        assert exc_info.value.error_code == "CONFIRMATION_CODE_REQUIRED"

    def test_unknown_escrow(self, buyer):
        with pytest.raises(NotFoundError) as exc_info:
            EscrowService.confirm_delivery(uuid.uuid4(), actor_id=buyer.id, confirmation=CONFIRMATION)

        assert exc_info.value.error_code == "ESCROW_NOT_FOUND"

    def test_malformed_escrow_id(self, buyer):
        with pytest.raises(NotFoundError) as exc_info:
            EscrowService.confirm_delivery("not-a-uuid", actor_id=buyer.id, confirmation=CONFIRMATION)

        assert exc_info.value.error_code == "ESCROW_NOT_FOUND"

    def test_get_escrow_malformed_id(self, db):
        with pytest.raises(NotFoundError):
            EscrowService.get_escrow("not-a-uuid")

    def test_second_confirmation_moves_no_money(self, held_escrow, buyer, seller):
        EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        with pytest.raises(EscrowNotHeld) as exc_info:
            EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert exc_info.value.error_code == "ESCROW_ALREADY_PROCESSED"
        assert exc_info.value.already_processed is True
        assert exc_info.value.http_status == 409
        assert wallet_balance(seller) == 95000
        assert len(LedgerService.get_entries_by_reference("escrow", held_escrow.id)) == 3

    def test_confirmation_after_refund_is_refused(self, held_escrow, buyer, seller, admin_user):
        EscrowService.admin_action(held_escrow.id, AdminAction.FORCE_REFUND, actor_id=admin_user.id)

        with pytest.raises(EscrowNotHeld) as exc_info:
            EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert exc_info.value.current_status == EscrowStatus.REFUNDED
        assert wallet_balance(seller) == 0
        assert wallet_balance(buyer) == 100000

    def test_lost_race_on_save_moves_no_money(self, held_escrow, buyer, seller, mocker):
        """The row changed between the read and the conditional write."""
        stale = EscrowTransaction.objects.get(pk=held_escrow.pk)
        EscrowTransaction.objects.filter(pk=held_escrow.pk).update(status=EscrowStatus.REFUNDED)
        mocker.patch.object(EscrowService, "_lock", return_value=stale)

        with pytest.raises(EscrowNotHeld) as exc_info:
            EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        assert exc_info.value.already_processed is True
        assert wallet_balance(seller) == 0
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 100000


# =============================================================================
# Admin overrides
# =============================================================================


@pytest.mark.django_db
class TestAdminAction:
    def test_force_release(self, held_escrow, seller, admin_user):
        escrow = EscrowService.admin_action(
            held_escrow.id,
            AdminAction.FORCE_RELEASE,
            actor_id=admin_user.id,
            notes="Seller sent proof of delivery",
        )

        assert escrow.status == EscrowStatus.RELEASED
        assert escrow.release_reason == ReleaseReason.ADMIN_FORCED
        assert escrow.admin_notes == "Seller sent proof of delivery"
        assert escrow.last_actor_id == admin_user.id
        assert wallet_balance(seller) == 95000

    def test_force_refund(self, held_escrow, buyer, seller, admin_user):
        escrow = EscrowService.admin_action(held_escrow.id, AdminAction.FORCE_REFUND, actor_id=admin_user.id)

        assert escrow.status == EscrowStatus.REFUNDED
        assert wallet_balance(buyer) == 100000
        assert wallet_balance(seller) == 0
        assert platform_balance(AccountType.PLATFORM_REVENUE) == 0
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 0
        assert notified(buyer, NotificationKind.ESCROW_REFUNDED)

    def test_open_dispute_freezes_money(self, disputed_escrow, buyer, seller):
        assert disputed_escrow.status == EscrowStatus.DISPUTED
        assert disputed_escrow.dispute_reason == "Item never arrived"
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 100000
        assert notified(buyer, NotificationKind.ESCROW_DISPUTED)
        assert notified(seller, NotificationKind.ESCROW_DISPUTED)

    def test_open_dispute_falls_back_to_notes(self, held_escrow):
        escrow = EscrowService.admin_action(
            held_escrow.id, AdminAction.OPEN_DISPUTE, notes="Buyer called support"
        )

        assert escrow.dispute_reason == "Buyer called support"

    def test_open_dispute_requires_reason(self, held_escrow):
        with pytest.raises(ValidationError) as exc_info:
            EscrowService.admin_action(held_escrow.id, AdminAction.OPEN_DISPUTE)

        assert exc_info.value.error_code == "DISPUTE_REASON_REQUIRED"

    @pytest.mark.parametrize(
        "resolution,expected_status",
        [
            (DisputeResolution.RELEASE, EscrowStatus.RELEASED),
            (DisputeResolution.REFUND, EscrowStatus.REFUNDED),
        ],
    )
    def test_resolve_dispute(self, disputed_escrow, buyer, seller, resolution, expected_status):
        escrow = EscrowService.admin_action(
            disputed_escrow.id, AdminAction.RESOLVE_DISPUTE, resolution=resolution
        )

        assert escrow.status == expected_status
        assert escrow.resolution == resolution
        assert platform_balance(AccountType.PLATFORM_ESCROW) == 0
        if resolution == DisputeResolution.RELEASE:
            assert wallet_balance(seller) == 95000
        else:
            assert wallet_balance(buyer) == 100000

    def test_resolve_requires_resolution(self, disputed_escrow):
        with pytest.raises(ValidationError) as exc_info:
            EscrowService.admin_action(disputed_escrow.id, AdminAction.RESOLVE_DISPUTE)

        assert exc_info.value.error_code == "INVALID_RESOLUTION"

    def test_resolve_held_escrow_refused(self, held_escrow):
        with pytest.raises(InvalidStateTransition) as exc_info:
            EscrowService.admin_action(
                held_escrow.id, AdminAction.RESOLVE_DISPUTE, resolution=DisputeResolution.RELEASE
            )

        assert exc_info.value.error_code == "INVALID_STATE_TRANSITION"
        assert exc_info.value.already_processed is False

    def test_force_release_disputed_refused(self, disputed_escrow):
        with pytest.raises(EscrowNotHeld) as exc_info:
            EscrowService.admin_action(disputed_escrow.id, AdminAction.FORCE_RELEASE)

        assert exc_info.value.error_code == "ESCROW_NOT_HELD"
        assert exc_info.value.current_status == EscrowStatus.DISPUTED

    def test_terminal_escrow_refused(self, held_escrow):
        EscrowService.admin_action(held_escrow.id, AdminAction.FORCE_RELEASE)

        with pytest.raises(EscrowNotHeld) as exc_info:
            EscrowService.admin_action(held_escrow.id, AdminAction.FORCE_REFUND)

        assert exc_info.value.error_code == "ESCROW_ALREADY_PROCESSED"

    def test_unknown_action(self, held_escrow):
        with pytest.raises(ValidationError) as exc_info:
            EscrowService.admin_action(held_escrow.id, "delete")

        assert exc_info.value.error_code == "INVALID_ACTION"

    def test_expected_version_matches(self, held_escrow):
        escrow = EscrowService.admin_action(
            held_escrow.id,
            AdminAction.OPEN_DISPUTE,
            reason="Damaged",
            expected_version=held_escrow.version,
        )

        assert escrow.status == EscrowStatus.DISPUTED
        assert escrow.version == held_escrow.version + 1

    def test_stale_version_refused(self, disputed_escrow):
        with pytest.raises(StaleRecordError):
            EscrowService.admin_action(
                disputed_escrow.id,
                AdminAction.RESOLVE_DISPUTE,
                resolution=DisputeResolution.REFUND,
                expected_version=1,
            )

        assert EscrowTransaction.objects.get(pk=disputed_escrow.pk).status == EscrowStatus.DISPUTED


# =============================================================================
# Timeout sweep
# =============================================================================


@pytest.mark.django_db
class TestSweepTimeouts:
    def test_releases_due_escrows_only(self, buyer, seller):
        due = create_held_escrow(buyer=buyer, seller=seller)
        later = create_held_escrow(buyer=buyer, seller=seller)
        EscrowTransaction.objects.filter(pk=due.pk).update(
            timeout_date=timezone.now() - timedelta(minutes=1)
        )

        report = EscrowService.sweep_timeouts()

        assert report.released == [str(due.id)]
        released = EscrowTransaction.objects.get(pk=due.pk)
        assert released.status == EscrowStatus.RELEASED
        assert released.auto_released is True
        assert released.release_reason == ReleaseReason.TIMEOUT
        assert released.confirmation_code.startswith("AUTO-TIMEOUT-")
        assert EscrowTransaction.objects.get(pk=later.pk).status == EscrowStatus.HELD
        assert wallet_balance(seller) == 95000

    def test_sweep_after_timeout_elapses(self, held_escrow, seller):
        with freeze_time(timezone.now() + timedelta(days=7, seconds=1)):
            report = EscrowService.sweep_timeouts()

        assert report.to_dict()["released"] == 1
        assert wallet_balance(seller) == 95000

    def test_disputed_escrows_are_not_swept(self, disputed_escrow):
        report = EscrowService.sweep_timeouts(now=timezone.now() + timedelta(days=30))

        assert report.released == []
        assert EscrowTransaction.objects.get(pk=disputed_escrow.pk).status == EscrowStatus.DISPUTED

    def test_batch_size_limits_run(self, buyer, seller):
        for _ in range(3):
            create_held_escrow(buyer=buyer, seller=seller)

        report = EscrowService.sweep_timeouts(
            now=timezone.now() + timedelta(days=8), batch_size=2
        )

        assert len(report.released) == 2
        assert EscrowTransaction.objects.filter(status=EscrowStatus.HELD).count() == 1

    def test_escrow_released_meanwhile_is_skipped(self, held_escrow, buyer, mocker):
        mocker.patch.object(EscrowService, "_due_escrow_ids", return_value=[held_escrow.id])
        EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=CONFIRMATION)

        report = EscrowService.sweep_timeouts()

        assert report.skipped == [str(held_escrow.id)]
        assert report.released == []

    def test_store_failure_is_reported(self, held_escrow, mocker):
        mocker.patch.object(EscrowService, "auto_release", side_effect=OperationalError("gone"))

        report = EscrowService.sweep_timeouts(now=timezone.now() + timedelta(days=8))

        assert report.failed == [str(held_escrow.id)]
        assert report.to_dict()["failed_ids"] == [str(held_escrow.id)]

    def test_auto_release_before_timeout_refused(self, held_escrow):
        with pytest.raises(InvalidStateTransition) as exc_info:
            EscrowService.auto_release(held_escrow.id)

        assert exc_info.value.error_code == "ESCROW_NOT_DUE"


# =============================================================================
# Queries
# =============================================================================


@pytest.mark.django_db
class TestQueries:
    def test_get_by_order(self, held_escrow):
        assert EscrowService.get_by_order(held_escrow.order_id).pk == held_escrow.pk

    def test_get_by_unknown_order(self):
        with pytest.raises(NotFoundError):
            EscrowService.get_by_order(uuid.uuid4())

    def test_search_by_escrow_or_order_id(self):
        escrow = EscrowTransactionFactory()
        EscrowTransactionFactory()

        assert list(EscrowService.search(str(escrow.id))) == [escrow]
        assert list(EscrowService.search(str(escrow.order_id))) == [escrow]
        assert EscrowService.search("not-a-uuid").count() == 0
        assert EscrowService.search("").count() == 2

    def test_statistics(self, buyer, seller):
        held = create_held_escrow(buyer=buyer, seller=seller, total_amount=1000)
        released = create_held_escrow(buyer=buyer, seller=seller, total_amount=3000)
        EscrowService.confirm_delivery(released.id, actor_id=buyer.id, confirmation=CONFIRMATION)
        EscrowService.admin_action(held.id, AdminAction.OPEN_DISPUTE, reason="Late")
        create_held_escrow(buyer=UserFactory(), seller=seller, total_amount=500)

        stats = EscrowService.get_statistics()

        assert stats["total"] == 3
        assert stats["by_status"] == {"held": 1, "disputed": 1, "released": 1, "refunded": 0}
        assert stats["held_amount"] == 500
        assert stats["disputed_amount"] == 1000
        assert stats["released_amount"] == 3000
        assert stats["refunded_amount"] == 0
