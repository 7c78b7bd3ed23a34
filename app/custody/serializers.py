"""
Serializers for the custody API.

Input serializers only validate request shape; every business rule
(conservation, status, ownership) is enforced by the services.

Serializers:
    EscrowTransactionSerializer: Read-only escrow representation
    CreateEscrowSerializer: Payment-capture callback input
    ConfirmDeliverySerializer: Buyer confirmation input
    AdminActionSerializer: Operator override input
    EscrowStatisticsSerializer: Dashboard counters
    WithdrawalRequestSerializer: Read-only withdrawal representation
    CreateWithdrawalSerializer: Withdrawal request input
    MarkPaidSerializer / RejectWithdrawalSerializer: Settlement input
    BatchMarkPaidSerializer: Batch settlement input
    BatchItemResultSerializer: Per-item batch outcome
    WalletBalanceSerializer: Wallet balance response
"""

from __future__ import annotations

from rest_framework import serializers

from custody.models import EscrowTransaction, WithdrawalRequest
from custody.state_machines import (
    AdminAction,
    DisputeResolution,
    MobileMoneyProvider,
    UserType,
    WithdrawalMethod,
)


# =============================================================================
# Escrow
# =============================================================================


class EscrowTransactionSerializer(serializers.ModelSerializer):
    """Read-only representation of an escrow."""

    class Meta:
        model = EscrowTransaction
        fields = [
            "id",
            "order_id",
            "buyer",
            "seller",
            "driver",
            "total_amount",
            "seller_amount",
            "driver_amount",
            "platform_fee",
            "currency",
            "status",
            "held_at",
            "timeout_date",
            "released_at",
            "refunded_at",
            "disputed_at",
            "completed_at",
            "confirmation_code",
            "client_comments",
            "dispute_reason",
            "auto_released",
            "release_reason",
            "resolution",
            "admin_notes",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SplitSerializer(serializers.Serializer):
    """Explicit amounts for a fixed split."""

    seller_amount = serializers.IntegerField(min_value=0)
    driver_amount = serializers.IntegerField(min_value=0, default=0)
    platform_fee = serializers.IntegerField(min_value=0, default=0)


class CreateEscrowSerializer(serializers.Serializer):
    """
    Input for placing a captured payment in escrow.

    Without ``split`` the configured percentage policy is used.
    """

    order_id = serializers.UUIDField()
    buyer_id = serializers.UUIDField()
    seller_id = serializers.UUIDField()
    driver_id = serializers.UUIDField(required=False, allow_null=True)
    total_amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(max_length=3, required=False)
    split = SplitSerializer(required=False)


class ConfirmDeliverySerializer(serializers.Serializer):
    confirmation_code = serializers.CharField(max_length=64)
    client_confirmed = serializers.BooleanField()
    comments = serializers.CharField(required=False, allow_blank=True, default="")


class AdminActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=AdminAction.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    reason = serializers.CharField(required=False, allow_blank=True)
    resolution = serializers.ChoiceField(choices=DisputeResolution.choices, required=False)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class EscrowStatisticsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    held_amount = serializers.IntegerField()
    disputed_amount = serializers.IntegerField()
    released_amount = serializers.IntegerField()
    refunded_amount = serializers.IntegerField()


# =============================================================================
# Withdrawals
# =============================================================================


class WithdrawalRequestSerializer(serializers.ModelSerializer):
    """Read-only representation of a withdrawal request."""

    user_email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = WithdrawalRequest
        fields = [
            "id",
            "user",
            "user_email",
            "user_type",
            "amount",
            "fee",
            "net_amount",
            "currency",
            "withdrawal_method",
            "mobile_money_provider",
            "mobile_money_phone",
            "status",
            "admin_reference",
            "admin_notes",
            "failure_reason",
            "processed_at",
            "paid_at",
            "version",
            "created_at",
        ]
        read_only_fields = fields


class CreateWithdrawalSerializer(serializers.Serializer):
    user_type = serializers.ChoiceField(choices=UserType.choices)
    amount = serializers.IntegerField(min_value=1)
    method = serializers.ChoiceField(choices=WithdrawalMethod.choices)
    provider = serializers.ChoiceField(
        choices=MobileMoneyProvider.choices,
        required=False,
        allow_blank=True,
    )
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    currency = serializers.CharField(max_length=3, required=False)


class MarkPaidSerializer(serializers.Serializer):
    admin_reference = serializers.CharField(max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True)


class RejectWithdrawalSerializer(serializers.Serializer):
    reason = serializers.CharField()


class BatchMarkPaidSerializer(serializers.Serializer):
    request_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        max_length=500,
    )
    batch_reference = serializers.CharField(max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True)


class BatchItemResultSerializer(serializers.Serializer):
    request_id = serializers.CharField()
    status = serializers.CharField()
    error_code = serializers.CharField(allow_null=True)
    error = serializers.CharField(allow_null=True)
    retryable = serializers.BooleanField()


class WithdrawalStatisticsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    pending_amount = serializers.IntegerField()
    paid_amount = serializers.IntegerField()
    rejected_amount = serializers.IntegerField()
    fees_collected = serializers.IntegerField()


class WalletBalanceSerializer(serializers.Serializer):
    amount = serializers.IntegerField()
    currency = serializers.CharField()
