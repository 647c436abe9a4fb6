"""
ProviderWebhookConfig model: signature secrets for inbound webhooks.

Each webhook registered with the provider has its own signing secret.
Inbound events carry the provider account id, which selects the secret.

Usage:
    config = ProviderWebhookConfig.objects.for_account("transfeera", account_id)
    if config is None:
        ...  # reject: unknown account
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ProviderWebhookConfigQuerySet(models.QuerySet):
    """QuerySet with secret lookup helpers."""

    def active(self):
        return self.filter(active=True)

    def for_account(self, provider: str, account_id: str) -> ProviderWebhookConfig | None:
        """Return the newest active config for a provider account, or None."""
        if not account_id:
            return None
        return (
            self.active()
            .filter(provider=provider, account_id=account_id)
            .order_by("-created_at")
            .first()
        )


class ProviderWebhookConfig(UUIDPrimaryKeyMixin, BaseModel):
    """
    A webhook registration at the provider and its signing secret.

    Fields:
        merchant_id: Merchant that registered the webhook
        provider: Provider name (e.g. "transfeera")
        account_id: Provider account/company id carried by events
        webhook_id: Provider-side webhook id
        url: Delivery URL registered at the provider
        signature_secret: HMAC secret for Transfeera-Signature
        object_types: Event kinds subscribed to
        active: Whether deliveries for this config are accepted
    """

    merchant_id = models.UUIDField(
        db_index=True,
        help_text="Merchant that owns this webhook registration",
    )
    provider = models.CharField(
        max_length=50,
        default="transfeera",
        help_text="Webhook source provider",
    )
    account_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Provider account id carried by inbound events",
    )
    webhook_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Provider-side webhook id",
    )
    url = models.URLField(
        max_length=500,
        help_text="Delivery URL registered at the provider",
    )
    signature_secret = models.CharField(
        max_length=255,
        help_text="Shared secret used to sign deliveries",
    )
    object_types = models.JSONField(
        default=list,
        blank=True,
        help_text="Event kinds this webhook is subscribed to",
    )
    active = models.BooleanField(
        default=True,
        help_text="Whether deliveries for this config are accepted",
    )

    objects = ProviderWebhookConfigQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Provider webhook config"
        verbose_name_plural = "Provider webhook configs"
        indexes = [
            models.Index(fields=["provider", "account_id", "active"], name="payments_pr_provide_9a3c47_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation without the secret."""
        return f"{self.provider} webhook {self.webhook_id} (account {self.account_id})"
