"""
Django admin configuration for ledger models.

LedgerEntry is read-only in the admin: entries are created by
LedgerService and corrected with new ADJUSTMENT entries, never edited.
"""

from django.contrib import admin

from .models import LedgerAccount, LedgerEntry


@admin.register(LedgerAccount)
class LedgerAccountAdmin(admin.ModelAdmin):
    """Visibility into account types, owners and balances."""

    list_display = [
        "id",
        "type",
        "owner_id",
        "currency",
        "balance",
        "is_active",
        "allow_negative",
        "created_at",
    ]
    list_filter = ["type", "currency", "is_active", "allow_negative"]
    search_fields = ["id", "owner_id"]
    # Balance only moves through LedgerService
    readonly_fields = ["id", "created_at", "balance", "computed_balance"]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "type", "owner_id", "currency")}),
        ("Configuration", {"fields": ("allow_negative", "is_active")}),
        ("Balance", {"fields": ("balance", "computed_balance")}),
        ("Timestamps", {"fields": ("created_at",)}),
    )

    @admin.display(description="Balance from entries")
    def computed_balance(self, obj: LedgerAccount) -> int:
        return obj.compute_balance()


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """Immutable ledger entries."""

    list_display = [
        "id",
        "created_at",
        "entry_type",
        "amount",
        "currency",
        "debit_account",
        "credit_account",
        "reference_type",
        "created_by",
    ]
    list_filter = ["entry_type", "reference_type", "created_at"]
    search_fields = [
        "id",
        "idempotency_key",
        "reference_id",
        "description",
        "created_by",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False
