"""
Status enums and choice sets for custody models.

These are Django TextChoices used by the django-fsm fields and by the
API serializers.

State Machines Overview:

EscrowTransaction:
    held → released   (buyer confirmation, admin force, timeout, dispute resolved)
    held → refunded   (admin force, dispute resolved)
    held → disputed → released / refunded

WithdrawalRequest:
    pending → paid
    pending → rejected
"""

from django.db import models


class EscrowStatus(models.TextChoices):
    """
    States for the EscrowTransaction lifecycle.

    Terminal states: RELEASED, REFUNDED
    """

    HELD = "held", "Held"
    DISPUTED = "disputed", "Disputed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"

    @classmethod
    def terminal(cls) -> tuple[str, ...]:
        return (cls.RELEASED, cls.REFUNDED)


class ReleaseReason(models.TextChoices):
    """Why an escrow left HELD or DISPUTED for RELEASED."""

    BUYER_CONFIRMED = "buyer_confirmed", "Buyer Confirmed"
    ADMIN_FORCED = "admin_forced", "Admin Forced"
    DISPUTE_RESOLVED = "dispute_resolved", "Dispute Resolved"
    TIMEOUT = "timeout", "Timeout"


class DisputeResolution(models.TextChoices):
    RELEASE = "release", "Release to Seller"
    REFUND = "refund", "Refund to Buyer"


class AdminAction(models.TextChoices):
    """Operator overrides accepted by EscrowService.admin_action."""

    FORCE_RELEASE = "force_release", "Force Release"
    FORCE_REFUND = "force_refund", "Force Refund"
    OPEN_DISPUTE = "open_dispute", "Open Dispute"
    RESOLVE_DISPUTE = "resolve_dispute", "Resolve Dispute"


class WithdrawalStatus(models.TextChoices):
    """
    States for the WithdrawalRequest lifecycle.

    Terminal states: PAID, REJECTED
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REJECTED = "rejected", "Rejected"


class UserType(models.TextChoices):
    CLIENT = "client", "Client"
    DRIVER = "driver", "Driver"
    SELLER = "seller", "Seller"
    PARTNER = "partner", "Partner"


class WithdrawalMethod(models.TextChoices):
    MOBILE_MONEY = "mobile_money", "Mobile Money"
    KWENDA_PAY = "kwenda_pay", "KwendaPay"


class MobileMoneyProvider(models.TextChoices):
    AIRTEL = "airtel", "Airtel Money"
    ORANGE = "orange", "Orange Money"
    MPESA = "mpesa", "M-Pesa"


__all__ = [
    "EscrowStatus",
    "ReleaseReason",
    "DisputeResolution",
    "AdminAction",
    "WithdrawalStatus",
    "UserType",
    "WithdrawalMethod",
    "MobileMoneyProvider",
]
