"""
EscrowTransaction model: funds held between buyer, seller and driver.

An escrow is created once the payment for an order has been captured.
The money sits in the platform escrow account until the buyer confirms
delivery, an operator overrides, or the timeout elapses. At that point
it is split between seller, driver and platform, or returned to the buyer.

Usage:
    from custody.models import EscrowTransaction
    from custody.state_machines import EscrowStatus, ReleaseReason

    escrow = EscrowTransaction.objects.select_for_update().get(pk=escrow_id)
    escrow.release(ReleaseReason.BUYER_CONFIRMED, confirmation_code="K7Q2")
    escrow.save()

Note:
    Status changes go through the django-fsm transitions only. The field is
    protected and the model uses ConcurrentTransitionMixin, so a save issues
    ``UPDATE ... WHERE status = <status when loaded>`` and raises
    ConcurrentTransition if another transaction moved the row first.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import RETURN_VALUE, ConcurrentTransitionMixin, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin
from core.models import BaseModel

from custody.state_machines import (
    DisputeResolution,
    EscrowStatus,
    ReleaseReason,
)


class EscrowTransaction(
    ConcurrentTransitionMixin,
    UUIDPrimaryKeyMixin,
    VersionedModelMixin,
    BaseModel,
):
    """
    Payment held in custody for one commercial order.

    State Flow:
        HELD -> RELEASED (buyer confirmation, admin force, timeout)
        HELD -> REFUNDED (admin force)
        HELD -> DISPUTED -> RELEASED / REFUNDED (admin resolution)

    Terminal states RELEASED and REFUNDED admit no further transition.

    Amounts are integers in minor units. The database enforces
    ``seller_amount + driver_amount + platform_fee == total_amount``.
    """

    order_id = models.UUIDField(
        unique=True,
        help_text="Commercial order this escrow belongs to (one escrow per order)",
    )

    # ==========================================================================
    # Parties
    # ==========================================================================

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrows_as_buyer",
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrows_as_seller",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrows_as_driver",
        null=True,
        blank=True,
        help_text="Delivery driver, absent for pickup marketplace sales",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.BigIntegerField(
        help_text="Captured amount in minor units",
    )
    seller_amount = models.BigIntegerField(
        help_text="Seller share in minor units",
    )
    driver_amount = models.BigIntegerField(
        default=0,
        help_text="Driver share in minor units (0 without a driver)",
    )
    platform_fee = models.BigIntegerField(
        default=0,
        help_text="Platform commission in minor units",
    )
    currency = models.CharField(
        max_length=3,
        default="CDF",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    status = FSMField(
        default=EscrowStatus.HELD,
        choices=EscrowStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the escrow (managed by FSM)",
    )
    held_at = models.DateTimeField(default=timezone.now)
    timeout_date = models.DateTimeField(
        db_index=True,
        help_text="Funds are released automatically once this passes",
    )
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    disputed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the escrow reached a terminal status",
    )

    confirmation_code = models.CharField(max_length=64, blank=True, default="")
    client_comments = models.TextField(blank=True, default="")
    dispute_reason = models.TextField(blank=True, default="")

    auto_released = models.BooleanField(default=False)
    release_reason = models.CharField(
        max_length=32,
        choices=ReleaseReason.choices,
        blank=True,
        default="",
    )
    resolution = models.CharField(
        max_length=16,
        choices=DisputeResolution.choices,
        blank=True,
        default="",
    )
    admin_notes = models.TextField(blank=True, default="")
    last_actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
        null=True,
        blank=True,
        help_text="Last operator or party that changed this escrow",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Escrow Transaction"
        verbose_name_plural = "Escrow Transactions"
        indexes = [
            models.Index(fields=["status", "timeout_date"], name="escrow_status_timeout_idx"),
            models.Index(fields=["buyer", "status"], name="escrow_buyer_status_idx"),
            models.Index(fields=["seller", "status"], name="escrow_seller_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="escrow_total_positive",
            ),
            models.CheckConstraint(
                condition=Q(seller_amount__gte=0)
                & Q(driver_amount__gte=0)
                & Q(platform_fee__gte=0),
                name="escrow_parts_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(
                    total_amount=F("seller_amount")
                    + F("driver_amount")
                    + F("platform_fee")
                ),
                name="escrow_split_conserves_total",
            ),
        ]

    def __str__(self) -> str:
        return f"Escrow({self.id}, {self.status}, {self.total_amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=EscrowStatus.HELD, target=EscrowStatus.RELEASED)
    def release(
        self,
        reason: str,
        confirmation_code: str = "",
        comments: str = "",
        auto: bool = False,
    ):
        """
        Release held funds to the seller, driver and platform.

        Transition: HELD -> RELEASED
        """
        now = timezone.now()
        self.release_reason = reason
        self.auto_released = auto
        if confirmation_code:
            self.confirmation_code = confirmation_code
        if comments:
            self.client_comments = comments
        self.released_at = now
        self.completed_at = now

    @transition(field=status, source=EscrowStatus.HELD, target=EscrowStatus.REFUNDED)
    def refund(self):
        """
        Return the full amount to the buyer.

        Transition: HELD -> REFUNDED
        """
        now = timezone.now()
        self.refunded_at = now
        self.completed_at = now

    @transition(field=status, source=EscrowStatus.HELD, target=EscrowStatus.DISPUTED)
    def open_dispute(self, reason: str):
        """
        Freeze the escrow until an operator decides.

        Transition: HELD -> DISPUTED

        Disputed escrows are not picked up by the timeout sweep.
        """
        self.dispute_reason = reason
        self.disputed_at = timezone.now()

    @transition(
        field=status,
        source=EscrowStatus.DISPUTED,
        target=RETURN_VALUE(EscrowStatus.RELEASED, EscrowStatus.REFUNDED),
    )
    def resolve_dispute(self, resolution: str) -> str:
        """
        Close a dispute in favour of the seller or the buyer.

        Transition: DISPUTED -> RELEASED (resolution=release)
                    DISPUTED -> REFUNDED (resolution=refund)
        """
        now = timezone.now()
        self.resolution = resolution
        self.completed_at = now
        if resolution == DisputeResolution.RELEASE:
            self.release_reason = ReleaseReason.DISPUTE_RESOLVED
            self.released_at = now
            return EscrowStatus.RELEASED
        self.refunded_at = now
        return EscrowStatus.REFUNDED

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in EscrowStatus.terminal()

    @property
    def is_held(self) -> bool:
        return self.status == EscrowStatus.HELD

    @property
    def has_driver(self) -> bool:
        return self.driver_id is not None

    def is_party(self, user_id) -> bool:
        """Check if the user is the buyer, seller or driver of this escrow."""
        return user_id in {self.buyer_id, self.seller_id, self.driver_id} - {None}
