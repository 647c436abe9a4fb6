"""
Webhook event parsing and handlers for Transfeera events.

Transfeera wraps every notification in an envelope::

    {"id": "evt-1", "version": "v1", "account_id": "acc-1",
     "object": "CashIn", "date": "2024-01-01T12:00:00Z", "data": {...}}

Handlers are registered per ``object`` type. Objects without a handler
(PixKey, Billet, ...) are acknowledged and logged so the provider stops
redelivering them.

Handlers raise domain exceptions instead of returning failures; the webhook
view maps each exception to the attempt status and HTTP response.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, parse_event, register_handler

    @register_handler("Billet")
    def handle_billet(event: WebhookEvent) -> ServiceResult:
        ...

    event = parse_event(request.body)
    result = dispatch_webhook(event)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult
from payments.exceptions import MalformedWebhookPayloadError
from payments.services import ChargeMatcher, WithdrawalOrchestrator

if TYPE_CHECKING:
    from typing import Any


logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


# =============================================================================
# Event Envelope
# =============================================================================


@dataclass
class WebhookEvent:
    """
    A parsed Transfeera notification.

    Attributes:
        id: Provider event id (shared by all redeliveries)
        object: Event kind, e.g. "CashIn" or "Transfer"
        account_id: Provider account the event belongs to
        data: Object payload
        raw: The full decoded body
    """

    id: str
    object: str
    account_id: str | None = None
    date: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    def require(self, *keys: str) -> None:
        """
        Ensure ``data`` carries the given keys.

        Raises:
            MalformedWebhookPayloadError: If any key is missing or empty
        """
        missing = [key for key in keys if self.data.get(key) in (None, "")]
        if missing:
            raise MalformedWebhookPayloadError(
                f"{self.object} event is missing {', '.join(missing)}",
                details={"event_id": self.id, "missing": missing},
            )


def parse_event(raw_body: bytes) -> WebhookEvent:
    """
    Decode a webhook body into a WebhookEvent.

    Missing ``id`` / ``object`` become "unknown" so the delivery can still
    be recorded; a body that is not a JSON object is rejected.

    Args:
        raw_body: Exact request body bytes

    Returns:
        WebhookEvent

    Raises:
        MalformedWebhookPayloadError: If the body is not a JSON object
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedWebhookPayloadError(
            "Webhook body is not valid JSON",
            details={"error": str(e)},
        ) from e

    if not isinstance(payload, dict):
        raise MalformedWebhookPayloadError("Webhook body must be a JSON object")

    data = payload.get("data")
    account_id = payload.get("account_id")
    return WebhookEvent(
        id=str(payload.get("id") or UNKNOWN),
        object=str(payload.get("object") or UNKNOWN),
        account_id=str(account_id) if account_id not in (None, "") else None,
        date=payload.get("date"),
        data=data if isinstance(data, dict) else {},
        raw=payload,
    )


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event object types to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(object_type: str) -> Callable:
    """
    Decorator to register a handler for an event object type.

    Args:
        object_type: Transfeera ``object`` value (e.g. "CashIn")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[object_type] = func
        logger.debug("Registered webhook handler", extra={"object_type": object_type})
        return func

    return decorator


def dispatch_webhook(event: WebhookEvent) -> ServiceResult:
    """
    Dispatch an event to the handler for its object type.

    Events without a handler are acknowledged with success(None).

    Args:
        event: The parsed event

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(event.object)

    if not handler:
        logger.info(
            "No handler registered for event object",
            extra={"event_id": event.id, "object_type": event.object},
        )
        return ServiceResult.success(None)

    logger.info(
        "Dispatching webhook event",
        extra={"event_id": event.id, "object_type": event.object},
    )
    return handler(event)


# =============================================================================
# Handlers
# =============================================================================


@register_handler("CashIn")
def handle_cash_in(event: WebhookEvent) -> ServiceResult:
    """
    Handle an incoming Pix payment.

    Marks the matching charge PAID and credits the merchant. Redeliveries
    are no-ops.

    Raises:
        MalformedWebhookPayloadError: No correlation keys or bad value
        ChargeNotFoundError: No charge matches
        ChargeNotPayableError: Charge is EXPIRED or CANCELED
    """
    outcome = ChargeMatcher.reconcile(event.data)
    logger.info(
        "CashIn event applied",
        extra={
            "event_id": event.id,
            "charge_id": str(outcome.charge.id),
            "credited": outcome.credited,
            "already_paid": outcome.already_paid,
            "amount_mismatch": outcome.amount_mismatch,
        },
    )
    return ServiceResult.success(outcome)


@register_handler("Transfer")
def handle_transfer(event: WebhookEvent) -> ServiceResult:
    """
    Handle a transfer status change for a withdrawal.

    Raises:
        MalformedWebhookPayloadError: Missing transfer id or status
    """
    event.require("id", "status")
    reason = event.data.get("bank_return_message") or event.data.get("error_message")
    if isinstance(event.data.get("error"), dict):
        reason = reason or event.data["error"].get("message")

    integration_id = event.data.get("integration_id")
    outcome = WithdrawalOrchestrator.handle_provider_status(
        str(event.data["id"]),
        str(event.data["status"]),
        reason,
        integration_id=str(integration_id) if integration_id else None,
    )
    return ServiceResult.success(outcome)
