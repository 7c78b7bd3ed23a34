"""
WithdrawalRequest model for manual mobile-money payouts.

A user asks for part of their wallet balance to be sent to a mobile-money
account. The amount is moved out of the wallet into the payout clearing
account as soon as the request is created, so it can't be withdrawn twice.
An operator then sends the money by hand and marks the request paid with
the provider's transaction id, or rejects it, which returns the money to
the wallet.

Usage:
    from custody.models import WithdrawalRequest

    request = WithdrawalRequest.objects.select_for_update().get(pk=request_id)
    request.mark_paid(admin_reference="MP240612.1432.C55412", actor_id=operator.id)
    request.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin
from core.models import BaseModel

from custody.state_machines import (
    MobileMoneyProvider,
    UserType,
    WithdrawalMethod,
    WithdrawalStatus,
)


class WithdrawalRequest(
    ConcurrentTransitionMixin,
    UUIDPrimaryKeyMixin,
    VersionedModelMixin,
    BaseModel,
):
    """
    A user's request to move wallet funds to an external account.

    State Flow:
        PENDING -> PAID (operator supplies admin_reference)
        PENDING -> REJECTED (amount goes back to the wallet)

    Fields:
        amount: Amount reserved from the wallet, in minor units
        fee: Platform fee withheld from the payout
        net_amount: amount - fee, what the user actually receives
        admin_reference: External transaction id, unique across requests
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="withdrawal_requests",
    )
    user_type = models.CharField(
        max_length=16,
        choices=UserType.choices,
        db_index=True,
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.BigIntegerField(help_text="Requested amount in minor units")
    fee = models.BigIntegerField(default=0, help_text="Withdrawal fee in minor units")
    net_amount = models.BigIntegerField(help_text="Amount paid out (amount - fee)")
    currency = models.CharField(max_length=3, default="CDF")

    # ==========================================================================
    # Payout destination
    # ==========================================================================

    withdrawal_method = models.CharField(
        max_length=16,
        choices=WithdrawalMethod.choices,
    )
    mobile_money_provider = models.CharField(
        max_length=16,
        choices=MobileMoneyProvider.choices,
        blank=True,
        default="",
        db_index=True,
    )
    mobile_money_phone = models.CharField(max_length=32, blank=True, default="")

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    status = FSMField(
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the request (managed by FSM)",
    )
    admin_reference = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider transaction id proving the transfer",
    )
    admin_notes = models.TextField(blank=True, default="")
    failure_reason = models.TextField(blank=True, default="")
    processed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
        null=True,
        blank=True,
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Withdrawal Request"
        verbose_name_plural = "Withdrawal Requests"
        indexes = [
            models.Index(fields=["status", "created_at"], name="withdrawal_status_created_idx"),
            models.Index(fields=["user", "status"], name="withdrawal_user_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(fee__gte=0) & Q(net_amount=F("amount") - F("fee")),
                name="withdrawal_net_amount_matches_fee",
            ),
        ]

    def __str__(self) -> str:
        return f"Withdrawal({self.id}, {self.status}, {self.amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.PAID,
    )
    def mark_paid(self, admin_reference: str, notes: str | None = None, actor_id=None):
        """
        Record that the operator sent the money.

        Transition: PENDING -> PAID
        """
        now = timezone.now()
        self.admin_reference = admin_reference
        if notes:
            self.admin_notes = notes
        self.processed_by_id = actor_id
        self.processed_at = now
        self.paid_at = now

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.REJECTED,
    )
    def reject(self, reason: str, actor_id=None):
        """
        Refuse the request.

        Transition: PENDING -> REJECTED
        """
        self.failure_reason = reason
        self.processed_by_id = actor_id
        self.processed_at = timezone.now()

    @property
    def is_pending(self) -> bool:
        return self.status == WithdrawalStatus.PENDING
