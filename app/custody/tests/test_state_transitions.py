"""
Tests for custody state machine transitions using django-fsm.

Tests valid and invalid transitions of EscrowTransaction and
WithdrawalRequest, and the conditional save that detects a transition
made by another transaction.
"""

import pytest
from django.db import transaction
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from custody.models import EscrowTransaction, WithdrawalRequest
from custody.state_machines import (
    DisputeResolution,
    EscrowStatus,
    ReleaseReason,
    WithdrawalStatus,
)
from custody.tests.factories import EscrowTransactionFactory, WithdrawalRequestFactory


# =============================================================================
# EscrowTransaction
# =============================================================================


@pytest.mark.django_db
class TestEscrowTransitions:
    """Tests for EscrowTransaction state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_held_to_released(self):
        escrow = EscrowTransactionFactory()

        escrow.release(ReleaseReason.BUYER_CONFIRMED, confirmation_code="K7Q2", comments="Merci")
        escrow.save()

        assert escrow.status == EscrowStatus.RELEASED
        assert escrow.release_reason == ReleaseReason.BUYER_CONFIRMED
        assert escrow.confirmation_code == "K7Q2"
        assert escrow.client_comments == "Merci"
        assert escrow.released_at is not None
        assert escrow.completed_at == escrow.released_at
        assert escrow.auto_released is False

    def test_held_to_released_by_timeout(self):
        escrow = EscrowTransactionFactory()

        escrow.release(ReleaseReason.TIMEOUT, auto=True)
        escrow.save()

        assert escrow.auto_released is True
        assert escrow.release_reason == ReleaseReason.TIMEOUT

    def test_held_to_refunded(self):
        escrow = EscrowTransactionFactory()

        escrow.refund()
        escrow.save()

        assert escrow.status == EscrowStatus.REFUNDED
        assert escrow.refunded_at is not None
        assert escrow.completed_at is not None

    def test_held_to_disputed(self):
        escrow = EscrowTransactionFactory()

        escrow.open_dispute("Wrong item")
        escrow.save()

        assert escrow.status == EscrowStatus.DISPUTED
        assert escrow.dispute_reason == "Wrong item"
        assert escrow.disputed_at is not None
        assert escrow.is_terminal is False

    @pytest.mark.parametrize(
        "resolution,expected",
        [
            (DisputeResolution.RELEASE, EscrowStatus.RELEASED),
            (DisputeResolution.REFUND, EscrowStatus.REFUNDED),
        ],
    )
    def test_disputed_resolution(self, resolution, expected):
        escrow = EscrowTransactionFactory(status=EscrowStatus.DISPUTED)

        escrow.resolve_dispute(resolution)
        escrow.save()

        assert escrow.status == expected
        assert escrow.resolution == resolution
        assert escrow.is_terminal is True

    def test_dispute_resolved_release_reason(self):
        escrow = EscrowTransactionFactory(status=EscrowStatus.DISPUTED)

        escrow.resolve_dispute(DisputeResolution.RELEASE)

        assert escrow.release_reason == ReleaseReason.DISPUTE_RESOLVED

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    @pytest.mark.parametrize("status", [EscrowStatus.RELEASED, EscrowStatus.REFUNDED])
    def test_terminal_escrow_admits_nothing(self, status):
        escrow = EscrowTransactionFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            escrow.release(ReleaseReason.ADMIN_FORCED)
        with pytest.raises(TransitionNotAllowed):
            escrow.refund()
        with pytest.raises(TransitionNotAllowed):
            escrow.open_dispute("late")

    def test_disputed_cannot_be_released_directly(self):
        escrow = EscrowTransactionFactory(status=EscrowStatus.DISPUTED)

        with pytest.raises(TransitionNotAllowed):
            escrow.release(ReleaseReason.TIMEOUT, auto=True)

    def test_held_cannot_be_resolved(self):
        escrow = EscrowTransactionFactory()

        with pytest.raises(TransitionNotAllowed):
            escrow.resolve_dispute(DisputeResolution.RELEASE)

    def test_status_is_protected(self):
        escrow = EscrowTransactionFactory()

        with pytest.raises(AttributeError):
            escrow.status = EscrowStatus.RELEASED

    # -------------------------------------------------------------------------
    # Concurrent transitions
    # -------------------------------------------------------------------------

    def test_stale_instance_cannot_overwrite_new_status(self):
        """A copy loaded before another transaction refunded must not release."""
        escrow = EscrowTransactionFactory()
        stale = EscrowTransaction.objects.get(pk=escrow.pk)
        EscrowTransaction.objects.filter(pk=escrow.pk).update(status=EscrowStatus.REFUNDED)

        stale.release(ReleaseReason.BUYER_CONFIRMED)
        with pytest.raises(ConcurrentTransition):
            with transaction.atomic():
                stale.save()

        fresh = EscrowTransaction.objects.get(pk=escrow.pk)
        assert fresh.status == EscrowStatus.REFUNDED
        assert fresh.released_at is None


# =============================================================================
# WithdrawalRequest
# =============================================================================


@pytest.mark.django_db
class TestWithdrawalTransitions:
    def test_pending_to_paid(self, admin_user):
        request = WithdrawalRequestFactory()

        request.mark_paid("MP240612.C55412", notes="Sent by Airtel", actor_id=admin_user.id)
        request.save()

        assert request.status == WithdrawalStatus.PAID
        assert request.admin_reference == "MP240612.C55412"
        assert request.admin_notes == "Sent by Airtel"
        assert request.processed_by_id == admin_user.id
        assert request.paid_at is not None

    def test_pending_to_rejected(self):
        request = WithdrawalRequestFactory()

        request.reject("Phone number does not match account")
        request.save()

        assert request.status == WithdrawalStatus.REJECTED
        assert request.failure_reason == "Phone number does not match account"
        assert request.processed_at is not None
        assert request.paid_at is None

    @pytest.mark.parametrize("status", [WithdrawalStatus.PAID, WithdrawalStatus.REJECTED])
    def test_settled_request_admits_nothing(self, status):
        request = WithdrawalRequestFactory(status=status)

        with pytest.raises(TransitionNotAllowed):
            request.mark_paid("MP-2")
        with pytest.raises(TransitionNotAllowed):
            request.reject("again")

    def test_stale_instance_cannot_pay_rejected_request(self):
        request = WithdrawalRequestFactory()
        stale = WithdrawalRequest.objects.get(pk=request.pk)
        WithdrawalRequest.objects.filter(pk=request.pk).update(status=WithdrawalStatus.REJECTED)

        stale.mark_paid("MP-3")
        with pytest.raises(ConcurrentTransition):
            with transaction.atomic():
                stale.save()

        fresh = WithdrawalRequest.objects.get(pk=request.pk)
        assert fresh.status == WithdrawalStatus.REJECTED
        assert fresh.paid_at is None
