"""
Webhook attempt store.

Every inbound delivery is recorded as its own WebhookAttempt row before any
validation can short-circuit, then finalized exactly once. Querying by
event id returns the full redelivery history, which is the first thing to
look at when a payment was "received but not applied".

Usage:
    from payments.webhooks.attempts import WebhookAttemptService

    attempt = WebhookAttemptService.record(
        provider="transfeera",
        event_type="CashIn",
        event_id=event["id"],
        signature_valid=check.valid,
        payload=event,
    )
    ...
    WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.PROCESSED)

    WebhookAttemptService.history("transfeera", event["id"])
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from django.db.models import QuerySet
from django.utils import timezone

from core.services import BaseService
from payments.models import WebhookAttempt
from payments.state_machines import WebhookAttemptStatus

UNKNOWN_EVENT = "unknown"
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500
MAX_ERROR_MESSAGE_LENGTH = 2000

_FINAL_STATUSES = (
    WebhookAttemptStatus.PROCESSED,
    WebhookAttemptStatus.REJECTED,
    WebhookAttemptStatus.FAILED,
)


class WebhookAttemptService(BaseService):
    """
    Append-only store of webhook deliveries.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def record(
        cls,
        provider: str,
        event_type: str | None,
        event_id: str | None,
        signature_valid: bool,
        attempt: int | None = None,
        payload: Any = None,
    ) -> WebhookAttempt:
        """
        Insert a new attempt row.

        Never upserts: a redelivery of the same event id gets its own row.

        Args:
            provider: Webhook source provider
            event_type: Event kind; "unknown" when not parseable
            event_id: Provider event id; "unknown" when not parseable
            signature_valid: Result of signature verification
            attempt: Delivery ordinal; derived from history when None
            payload: Parsed event body, stored for diagnosis

        Returns:
            The created WebhookAttempt with status RECEIVED
        """
        event_type = str(event_type or UNKNOWN_EVENT)[:100]
        event_id = str(event_id or UNKNOWN_EVENT)[:255]
        if attempt is None:
            attempt = WebhookAttempt.objects.filter(provider=provider, event_id=event_id).count() + 1

        record = WebhookAttempt.objects.create(
            provider=provider,
            event_type=event_type,
            event_id=event_id,
            attempt=max(int(attempt), 1),
            signature_valid=signature_valid,
            payload=payload,
            status=WebhookAttemptStatus.RECEIVED,
        )
        cls.get_logger().info(
            "Webhook attempt recorded",
            extra={
                "attempt_id": str(record.id),
                "provider": provider,
                "event_type": event_type,
                "event_id": event_id,
                "attempt": record.attempt,
                "signature_valid": signature_valid,
            },
        )
        return record

    @classmethod
    def mark_processed(
        cls,
        attempt_id: uuid.UUID,
        status: str,
        error_message: str | None = None,
    ) -> bool:
        """
        Finalize an attempt's status, once.

        The update is conditional on the attempt still being RECEIVED, so a
        second finalization leaves the first one in place.

        Args:
            attempt_id: Attempt to finalize
            status: PROCESSED, REJECTED or FAILED
            error_message: Rejection or failure reason

        Returns:
            True if this call finalized the attempt, False if it was
            already final

        Raises:
            ValueError: If status is not a final status
        """
        if status not in _FINAL_STATUSES:
            raise ValueError(f"{status!r} is not a final webhook attempt status")

        if error_message:
            error_message = error_message[:MAX_ERROR_MESSAGE_LENGTH]

        updated = WebhookAttempt.objects.filter(
            id=attempt_id,
            status=WebhookAttemptStatus.RECEIVED,
        ).update(
            status=status,
            error_message=error_message,
            processed_at=timezone.now(),
        )
        if not updated:
            cls.get_logger().warning(
                "Webhook attempt already finalized",
                extra={"attempt_id": str(attempt_id), "status": str(status)},
            )
        return bool(updated)

    @classmethod
    def list_recent(
        cls,
        provider: str,
        *,
        event_id: str | None = None,
        event_type: str | None = None,
        status: str | None = None,
        since: datetime | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[WebhookAttempt]:
        """
        List recent attempts for diagnostics, newest first.

        Args:
            provider: Webhook source provider
            event_id: Only attempts for this event
            event_type: Only attempts of this kind
            status: Only attempts in this status
            since: Only attempts received at or after this time
            limit: Maximum rows, clamped to [1, 500]
        """
        limit = max(1, min(int(limit), MAX_LIST_LIMIT))
        return list(
            cls._filtered(provider, event_id=event_id, event_type=event_type, status=status, since=since)
            .order_by("-created_at")[:limit]
        )

    @classmethod
    def history(cls, provider: str, event_id: str) -> list[WebhookAttempt]:
        """Full redelivery history of one event, oldest first."""
        return list(cls._filtered(provider, event_id=event_id).order_by("created_at", "attempt"))

    @staticmethod
    def _filtered(
        provider: str,
        event_id: str | None = None,
        event_type: str | None = None,
        status: str | None = None,
        since: datetime | None = None,
    ) -> QuerySet[WebhookAttempt]:
        queryset = WebhookAttempt.objects.filter(provider=provider)
        if event_id:
            queryset = queryset.filter(event_id=event_id)
        if event_type:
            queryset = queryset.filter(event_type=event_type)
        if status:
            queryset = queryset.filter(status=status)
        if since:
            queryset = queryset.filter(created_at__gte=since)
        return queryset
