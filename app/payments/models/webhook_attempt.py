"""
WebhookAttempt model: one row per inbound webhook delivery.

Providers redeliver the same event id on any non-2xx response or timeout,
and every redelivery is a distinct observable attempt. Rows are therefore
never upserted by event id; the full redelivery history of an event is the
set of rows sharing (provider, event_id).

Usage:
    from payments.webhooks.attempts import WebhookAttemptService

    attempt = WebhookAttemptService.record(
        provider="transfeera",
        event_type="CashIn",
        event_id="evt-1",
        signature_valid=True,
    )
    WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.PROCESSED)
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from payments.state_machines import WebhookAttemptStatus


class WebhookAttempt(UUIDPrimaryKeyMixin, models.Model):
    """
    Audit record of a single webhook delivery.

    Immutable after creation except for the one-time finalization of
    status, error_message and processed_at. Rows are never deleted.

    Fields:
        provider: Webhook source (e.g. "transfeera")
        event_type: Event kind from the payload ``object`` field
        event_id: Provider-assigned event id ("unknown" if unparseable)
        status: received, processed, rejected or failed
        attempt: 1-based ordinal of this delivery for the event
        signature_valid: Result of signature verification
        error_message: Why the delivery was rejected or failed
        payload: Parsed JSON body, kept for replay diagnosis
        created_at: When the delivery arrived
        processed_at: When processing concluded
    """

    provider = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Webhook source provider",
    )
    event_type = models.CharField(
        max_length=100,
        help_text="Event kind (payload 'object' field)",
    )
    event_id = models.CharField(
        max_length=255,
        help_text="Provider-assigned event id used for dedup and diagnosis",
    )
    status = models.CharField(
        max_length=16,
        choices=WebhookAttemptStatus.choices,
        default=WebhookAttemptStatus.RECEIVED,
        db_index=True,
        help_text="Processing status of this delivery",
    )
    attempt = models.PositiveIntegerField(
        default=1,
        help_text="Ordinal of this delivery among deliveries of the same event",
    )
    signature_valid = models.BooleanField(
        default=False,
        help_text="Whether the delivery carried a valid signature",
    )
    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Rejection or failure reason",
    )
    payload = models.JSONField(
        null=True,
        blank=True,
        help_text="Parsed event body",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the delivery was received",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When processing concluded",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook attempt"
        verbose_name_plural = "Webhook attempts"
        indexes = [
            models.Index(fields=["provider", "event_id"], name="payments_we_provide_1e6b82_idx"),
            models.Index(fields=["provider", "-created_at"], name="payments_we_provide_c40d15_idx"),
            models.Index(fields=["provider", "event_type", "status"], name="payments_we_provide_7f2a90_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(attempt__gte=1),
                name="webhook_attempt_ordinal_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation."""
        return f"{self.provider}:{self.event_type}:{self.event_id} #{self.attempt} ({self.status})"

    @property
    def is_final(self) -> bool:
        """Check if processing of this delivery has concluded."""
        return self.status != WebhookAttemptStatus.RECEIVED
