"""
Django admin configuration for ledger entries.

Entries are read-only in the admin: amounts and directions never change,
and status only moves through LedgerService. Corrections are made with new
ADJUSTMENT entries.
"""

from django.contrib import admin

from .models import LedgerAccount, LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """Read-only listing of ledger entries with owner and reference filters."""

    list_display = [
        "id",
        "created_at",
        "user_id",
        "entry_type",
        "status",
        "amount_display",
        "reference_type",
        "reference_id",
    ]
    list_filter = ["entry_type", "status", "reference_type", "created_at"]
    search_fields = ["id", "user_id", "idempotency_key", "reference_id", "description"]
    readonly_fields = [
        "id",
        "user_id",
        "entry_type",
        "status",
        "amount_cents",
        "is_credit",
        "reference_type",
        "reference_id",
        "idempotency_key",
        "description",
        "occurred_at",
        "created_at",
        "status_changed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        ("Entry Details", {"fields": ("id", "user_id", "entry_type", "amount_cents", "is_credit")}),
        ("Status", {"fields": ("status", "status_changed_at")}),
        ("Reference", {"fields": ("reference_type", "reference_id", "idempotency_key")}),
        ("Timestamps", {"fields": ("occurred_at", "created_at", "description")}),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: LedgerEntry) -> str:
        """Display the signed amount formatted as BRL."""
        return f"R$ {obj.signed_amount / 100:.2f}"

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(LedgerAccount)
class LedgerAccountAdmin(admin.ModelAdmin):
    list_display = ["user_id", "created_at"]
    search_fields = ["user_id"]
    readonly_fields = ["user_id", "created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
