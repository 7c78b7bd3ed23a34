"""
Custody-specific exceptions for escrow and withdrawal operations.

Exception Hierarchy:
    CustodyError (base for custody domain)
    InvalidSplit - Escrow amounts do not add up (inherits ValidationError)
    NotAuthorized - Actor is not allowed to trigger the transition
                    (inherits PermissionDeniedError)
    InvalidStateTransition - Transition not allowed from current status
    ├── EscrowNotHeld - Escrow left HELD before the caller got to it
    └── WithdrawalNotPending - Withdrawal request already settled
    DuplicateAdminReference - Payout reference already used
    StaleRecordError - Optimistic locking conflict
    LockAcquisitionError - Distributed lock contention

All state and race errors inherit ConflictError (HTTP 409). A caller that
lost a race should refresh and look at the new state; no money moved.

Usage:
    from custody.exceptions import EscrowNotHeld, InvalidSplit

    try:
        EscrowService.confirm_delivery(escrow_id, actor_id=user.id, confirmation=data)
    except EscrowNotHeld as e:
        if e.already_processed:
            return Response(e.to_dict(), status=409)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class CustodyError(BaseApplicationError):
    """Base exception for custody operations that fit no narrower class."""

    default_error_code: str = "CUSTODY_ERROR"


class InvalidSplit(ValidationError):
    """
    Raised when escrow amounts violate the conservation rule.

    seller_amount + driver_amount + platform_fee must equal total_amount
    exactly, every part must be non-negative, and a driver share requires
    a driver.

    Example:
        raise InvalidSplit(
            "Split does not add up to the total",
            details={"total_amount": 100000, "sum": 99999},
        )
    """

    default_error_code: str = "INVALID_SPLIT"


class NotAuthorized(PermissionDeniedError):
    """
    Raised when the acting user may not perform the transition.

    Not retryable: retrying with the same actor will always fail.
    """

    default_error_code: str = "NOT_AUTHORIZED"


class InvalidStateTransition(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed / ConcurrentTransition with our
    standard error format. ``details`` carries ``current_status`` and the
    attempted ``action``.

    Attributes:
        current_status: Status observed when the transition was refused
        already_processed: True when the record is in a terminal status
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        current_status: str | None = None,
        already_processed: bool = False,
    ):
        details = dict(details or {})
        if current_status is not None:
            details.setdefault("current_status", current_status)
        details.setdefault("already_processed", already_processed)
        super().__init__(message, error_code=error_code, details=details)
        self.current_status = current_status
        self.already_processed = already_processed


class EscrowNotHeld(InvalidStateTransition):
    """
    Raised when an escrow is no longer HELD.

    This is the error every loser of a release/refund race sees. When the
    escrow already reached a terminal status the error code is
    ESCROW_ALREADY_PROCESSED so clients can show "already processed"
    instead of a generic failure.
    """

    default_error_code: str = "ESCROW_NOT_HELD"


class WithdrawalNotPending(InvalidStateTransition):
    """Raised when a withdrawal request is no longer PENDING."""

    default_error_code: str = "WITHDRAWAL_NOT_PENDING"


class DuplicateAdminReference(ConflictError):
    """
    Raised when an admin reference is already attached to another request.

    Each paid request needs its own proof of transfer.
    """

    default_error_code: str = "DUPLICATE_ADMIN_REFERENCE"


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    ``details`` contains pk, expected_version and current_version.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    ``details`` contains the lock key and, for blocking locks, the timeout.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    "CustodyError",
    "InvalidSplit",
    "NotAuthorized",
    "InvalidStateTransition",
    "EscrowNotHeld",
    "WithdrawalNotPending",
    "DuplicateAdminReference",
    "StaleRecordError",
    "LockAcquisitionError",
]
