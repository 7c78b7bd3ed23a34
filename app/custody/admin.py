"""
Custody admin configuration.

Registers the escrow and withdrawal models and re-exports the ledger
admins. Status fields are protected FSM fields, so status changes go
through the API (admin-action, mark-paid, reject), never through the
change form.
"""

from django.contrib import admin

from custody.ledger.admin import LedgerAccountAdmin, LedgerEntryAdmin
from custody.models import EscrowTransaction, WithdrawalRequest

__all__ = [
    "LedgerAccountAdmin",
    "LedgerEntryAdmin",
    "EscrowTransactionAdmin",
    "WithdrawalRequestAdmin",
]


@admin.register(EscrowTransaction)
class EscrowTransactionAdmin(admin.ModelAdmin):
    """Read-mostly view of escrows; only admin notes are editable."""

    list_display = [
        "id",
        "order_id",
        "buyer",
        "seller",
        "driver",
        "total_amount",
        "currency",
        "status",
        "auto_released",
        "timeout_date",
        "created_at",
    ]
    list_filter = ["status", "currency", "auto_released", "release_reason"]
    search_fields = ["id", "order_id", "buyer__email", "seller__email", "driver__email"]
    raw_id_fields = ["buyer", "seller", "driver", "last_actor"]
    readonly_fields = [
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
        "last_actor",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    date_hierarchy = "created_at"

    fieldsets = (
        (None, {"fields": ("id", "order_id", "status", "version")}),
        ("Parties", {"fields": ("buyer", "seller", "driver")}),
        (
            "Amounts",
            {
                "fields": (
                    "total_amount",
                    "seller_amount",
                    "driver_amount",
                    "platform_fee",
                    "currency",
                )
            },
        ),
        (
            "Lifecycle",
            {
                "fields": (
                    "held_at",
                    "timeout_date",
                    "released_at",
                    "refunded_at",
                    "disputed_at",
                    "completed_at",
                )
            },
        ),
        (
            "Release",
            {
                "fields": (
                    "confirmation_code",
                    "client_comments",
                    "auto_released",
                    "release_reason",
                )
            },
        ),
        (
            "Dispute",
            {"fields": ("dispute_reason", "resolution", "admin_notes", "last_actor")},
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "user_type",
        "amount",
        "fee",
        "net_amount",
        "currency",
        "mobile_money_provider",
        "status",
        "admin_reference",
        "created_at",
    ]
    list_filter = ["status", "user_type", "withdrawal_method", "mobile_money_provider"]
    search_fields = ["id", "user__email", "mobile_money_phone", "admin_reference"]
    raw_id_fields = ["user", "processed_by"]
    readonly_fields = [
        "id",
        "user",
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
        "failure_reason",
        "processed_at",
        "paid_at",
        "processed_by",
        "version",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "user", "user_type", "status", "version")}),
        ("Amounts", {"fields": ("amount", "fee", "net_amount", "currency")}),
        (
            "Payout",
            {
                "fields": (
                    "withdrawal_method",
                    "mobile_money_provider",
                    "mobile_money_phone",
                )
            },
        ),
        (
            "Settlement",
            {
                "fields": (
                    "admin_reference",
                    "admin_notes",
                    "failure_reason",
                    "processed_by",
                    "processed_at",
                    "paid_at",
                )
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
