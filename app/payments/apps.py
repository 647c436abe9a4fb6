"""
Payments app configuration.

This app provides the Pix payment core:
- Webhook authentication and attempt auditing
- Charge reconciliation
- Per-account ledger with pending/posted/canceled entries
- Withdrawals through the Transfeera transfer API
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Registers the webhook handlers
        from payments.webhooks import handlers  # noqa: F401
