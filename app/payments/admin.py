"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule
and registers payment domain models with the Django admin.

Charges, withdrawals and webhook attempts are read-only here: their state
only changes through reconciliation and the withdrawal orchestrator.
"""

from django.contrib import admin

from payments.ledger.admin import LedgerEntryAdmin
from payments.models import Charge, PixKey, ProviderWebhookConfig, WebhookAttempt, Withdrawal

__all__ = [
    "LedgerEntryAdmin",
    "ChargeAdmin",
    "WithdrawalAdmin",
    "WebhookAttemptAdmin",
    "PixKeyAdmin",
    "ProviderWebhookConfigAdmin",
]


class ReadOnlyAdminMixin:
    """Disables add, change and delete in the admin."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Charge)
class ChargeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Charges with their correlation identifiers, searchable for support."""

    list_display = [
        "id",
        "merchant_id",
        "method",
        "status",
        "amount_display",
        "pix_txid",
        "external_ref",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "method", "created_at"]
    search_fields = ["id", "merchant_id", "pix_txid", "external_ref"]
    readonly_fields = [
        "id",
        "merchant_id",
        "amount_cents",
        "currency",
        "method",
        "status",
        "external_ref",
        "pix_txid",
        "paid_at",
        "description",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Charge) -> str:
        return f"R$ {obj.amount_cents / 100:.2f}"


@admin.register(Withdrawal)
class WithdrawalAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for Withdrawal.

    Shows provider identifiers and failure reasons so stuck payouts can be
    matched against the Transfeera dashboard.
    """

    list_display = [
        "id",
        "user_id",
        "status",
        "amount_display",
        "fee_cents",
        "provider_transfer_id",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "user_id", "provider_transfer_id", "provider_batch_id", "idempotency_key"]
    readonly_fields = [
        "id",
        "user_id",
        "amount_cents",
        "fee_cents",
        "total_debited_cents",
        "status",
        "provider_transfer_id",
        "provider_batch_id",
        "idempotency_key",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
        "processed_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "user_id", "status", "idempotency_key")}),
        ("Amounts", {"fields": ("amount_cents", "fee_cents", "total_debited_cents")}),
        ("Provider", {"fields": ("provider_transfer_id", "provider_batch_id", "failure_reason")}),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at", "processed_at", "version"),
                "classes": ("collapse",),
            },
        ),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: Withdrawal) -> str:
        return f"R$ {obj.amount_cents / 100:.2f}"


@admin.register(WebhookAttempt)
class WebhookAttemptAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Every inbound delivery, including rejected ones."""

    list_display = [
        "created_at",
        "provider",
        "event_type",
        "event_id",
        "attempt",
        "status",
        "signature_valid",
    ]
    list_filter = ["provider", "status", "signature_valid", "event_type"]
    search_fields = ["event_id", "error_message"]
    readonly_fields = [
        "id",
        "provider",
        "event_type",
        "event_id",
        "attempt",
        "status",
        "signature_valid",
        "error_message",
        "payload",
        "created_at",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(PixKey)
class PixKeyAdmin(admin.ModelAdmin):
    list_display = ["id", "user_id", "key_type", "key", "is_verified", "verified_at"]
    list_filter = ["key_type", "is_verified"]
    search_fields = ["user_id", "key", "owner_document"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(ProviderWebhookConfig)
class ProviderWebhookConfigAdmin(admin.ModelAdmin):
    list_display = ["id", "provider", "account_id", "merchant_id", "webhook_id", "active", "created_at"]
    list_filter = ["provider", "active"]
    search_fields = ["account_id", "webhook_id", "merchant_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
