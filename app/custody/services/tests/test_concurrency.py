"""
Escrow release paths racing on real database connections.

Every thread runs its own transaction; the row lock and the conditional
status update must let exactly one release or refund through, and the
ledger must move the escrowed total exactly once.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from django.db import connection
from django.utils import timezone

from authentication.tests.factories import UserFactory
from custody.exceptions import InvalidStateTransition
from custody.ledger.models import AccountType
from custody.ledger.services import LedgerService
from custody.models import EscrowTransaction
from custody.services import EscrowService
from custody.state_machines import AdminAction, EscrowStatus
from custody.tests.factories import create_held_escrow
from custody.tests.test_integration import assert_ledger_conserved

CONFIRMATION = {"confirmation_code": "K7Q2", "client_confirmed": True}


def run_together(calls):
    """Start every call at the same moment, each on its own connection."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        try:
            barrier.wait()
            call()
            return "succeeded"
        except InvalidStateTransition:
            return "already_processed"
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        return list(executor.map(run, calls))


def wallet(user) -> int:
    return LedgerService.get_wallet_balance(user.id, "CDF").amount


def account(account_type) -> int:
    return LedgerService.get_or_create_account(account_type, currency="CDF").balance


@pytest.fixture
def due_escrow(row_locking_db, mocker):
    mocker.patch("notifications.services.deliver_notification")
    escrow = create_held_escrow(
        buyer=UserFactory(),
        seller=UserFactory(),
        driver=UserFactory(),
        total_amount=100000,
    )
    EscrowTransaction.objects.filter(pk=escrow.pk).update(
        timeout_date=timezone.now() - timedelta(hours=1)
    )
    return escrow


@pytest.mark.concurrency
class TestConcurrentRelease:
    def test_one_release_path_wins(self, due_escrow):
        operator = UserFactory(is_staff=True)
        escrow_id = due_escrow.id
        calls = [
            lambda: EscrowService.confirm_delivery(
                escrow_id, actor_id=due_escrow.buyer_id, confirmation=CONFIRMATION
            ),
            lambda: EscrowService.admin_action(
                escrow_id, AdminAction.FORCE_RELEASE, actor_id=operator.id, notes="Proof sent"
            ),
            lambda: EscrowService.admin_action(
                escrow_id, AdminAction.FORCE_REFUND, actor_id=operator.id
            ),
            lambda: EscrowService.auto_release(escrow_id),
        ]

        results = run_together(calls)

        assert results.count("succeeded") == 1
        assert results.count("already_processed") == 3

        escrow = EscrowTransaction.objects.get(pk=escrow_id)
        assert escrow.status in (EscrowStatus.RELEASED, EscrowStatus.REFUNDED)
        paid_out = (
            wallet(escrow.seller)
            + wallet(escrow.driver)
            + wallet(escrow.buyer)
            + account(AccountType.PLATFORM_REVENUE)
        )
        assert paid_out == 100000
        assert account(AccountType.PLATFORM_ESCROW) == 0
        assert_ledger_conserved()

    def test_repeated_buyer_confirmations(self, due_escrow):
        escrow_id = due_escrow.id
        calls = [
            lambda: EscrowService.confirm_delivery(
                escrow_id, actor_id=due_escrow.buyer_id, confirmation=CONFIRMATION
            )
        ] * 6

        results = run_together(calls)

        assert results.count("succeeded") == 1
        assert wallet(due_escrow.seller) == 80000
        assert wallet(due_escrow.driver) == 15000
        assert account(AccountType.PLATFORM_REVENUE) == 5000
        assert_ledger_conserved()

    def test_overlapping_sweeps_release_once(self, due_escrow):
        reports = []

        def sweep():
            reports.append(EscrowService.sweep_timeouts())

        results = run_together([sweep] * 4)

        assert results == ["succeeded"] * 4
        assert sum(len(report.released) for report in reports) == 1
        assert sum(len(report.failed) for report in reports) == 0
        assert wallet(due_escrow.seller) == 80000
        assert EscrowTransaction.objects.get(pk=due_escrow.id).auto_released is True
        assert_ledger_conserved()
