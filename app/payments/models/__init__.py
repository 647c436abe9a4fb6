"""
Payment domain models.

This module contains the reconciliation and payout models:
- Charge: Incoming payment request reconciled from provider webhooks
- WebhookAttempt: Append-only record of every inbound webhook delivery
- Withdrawal: Payout request driven through the provider transfer API
- PixKey: User payout destinations
- ProviderWebhookConfig: Per-account webhook signing secrets

Ledger models live in payments.ledger.models and are re-exported here so
Django registers them with the payments app.
"""

from payments.ledger.models import EntryStatus, EntryType, LedgerAccount, LedgerEntry
from payments.models.charge import Charge
from payments.models.pix_key import PixKey
from payments.models.webhook_attempt import WebhookAttempt
from payments.models.webhook_config import ProviderWebhookConfig
from payments.models.withdrawal import Withdrawal

__all__ = [
    "Charge",
    "EntryStatus",
    "EntryType",
    "LedgerAccount",
    "LedgerEntry",
    "PixKey",
    "ProviderWebhookConfig",
    "WebhookAttempt",
    "Withdrawal",
]
