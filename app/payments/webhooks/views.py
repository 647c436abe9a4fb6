"""
Webhook endpoint view for transfer-provider notifications.

The view:
1. Parses the JSON envelope
2. Looks up the webhook config for the event's account and verifies the
   ``Transfeera-Signature`` header against its secret
3. Records a WebhookAttempt (before any rejection, so every delivery,
   including one addressed to an unsupported provider, is auditable)
4. Dispatches the event to its handler synchronously
5. Finalizes the attempt and answers the provider

Response codes:
    200: Processed, idempotent no-op, or unmatched charge acknowledged
    400: Body is not JSON or the event lacks required fields
    401: No webhook config for the account, bad or expired signature
    404: Unsupported provider (the attempt is still recorded as REJECTED)
    409: Unmatched charge when WEBHOOK_UNMATCHED_CHARGE_POLICY is "retry"
    500: Unexpected error (the provider redelivers)

Usage:
    # In urls.py
    from payments.webhooks.views import provider_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import (
    MalformedWebhookPayloadError,
    ReconciliationError,
    WebhookAuthenticationError,
)
from payments.models import ProviderWebhookConfig, WebhookAttempt
from payments.state_machines import WebhookAttemptStatus
from payments.webhooks.attempts import WebhookAttemptService
from payments.webhooks.handlers import UNKNOWN, WebhookEvent, dispatch_webhook, parse_event
from payments.webhooks.signature import SIGNATURE_HEADER, is_within_tolerance, verify

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("transfeera",)

UNMATCHED_POLICY_ACKNOWLEDGE = "acknowledge"
UNMATCHED_POLICY_RETRY = "retry"

MAX_RAW_BODY_IN_ATTEMPT = 2000
MAX_PROVIDER_LENGTH = 50


def _error(status: int, error_code: str, message: str, attempt_id=None) -> JsonResponse:
    body = {"received": False, "error": error_code, "message": message}
    if attempt_id is not None:
        body["attempt_id"] = str(attempt_id)
    return JsonResponse(body, status=status)


def _record_rejected(provider: str, reason: str, raw_body: bytes, event: WebhookEvent | None = None) -> WebhookAttempt:
    """Record a delivery turned away before it could be authenticated."""
    if event is None:
        event_type = event_id = UNKNOWN
        payload = {"raw_body": raw_body[:MAX_RAW_BODY_IN_ATTEMPT].decode("utf-8", errors="replace")}
    else:
        event_type, event_id, payload = event.object, event.id, event.raw

    attempt = WebhookAttemptService.record(
        provider=provider[:MAX_PROVIDER_LENGTH],
        event_type=event_type,
        event_id=event_id,
        signature_valid=False,
        payload=payload,
    )
    WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.REJECTED, reason)
    return attempt


def _authenticate(provider: str, raw_body: bytes, header: str | None, account_id: str | None) -> tuple[bool, WebhookAuthenticationError | None]:
    """
    Check a delivery's signature against its account's webhook config.

    Returns:
        (signature_valid, error) where error is None when the delivery is
        authentic
    """
    config = ProviderWebhookConfig.objects.for_account(provider, account_id)
    if config is None:
        return False, WebhookAuthenticationError(
            f"No active webhook config for account {account_id}",
            error_code="WEBHOOK_CONFIG_NOT_FOUND",
            details={"account_id": account_id},
        )

    check = verify(raw_body, header, config.signature_secret)
    if not check.valid:
        return False, WebhookAuthenticationError("Signature mismatch", error_code="INVALID_SIGNATURE")

    if not is_within_tolerance(check.timestamp_ms, settings.WEBHOOK_SIGNATURE_TOLERANCE_SECONDS):
        return True, WebhookAuthenticationError(
            "Signature timestamp outside the allowed window",
            error_code="SIGNATURE_EXPIRED",
            details={"timestamp_ms": check.timestamp_ms},
        )

    return True, None


@csrf_exempt
@require_POST
def provider_webhook(request: HttpRequest, provider: str) -> JsonResponse:
    """
    Receive, authenticate and apply a provider webhook.

    The handler runs inside the request. Charge crediting and withdrawal
    finalization are conditional writes, so redeliveries of an event that
    was already applied return 200 without changing anything.

    Returns:
        JsonResponse, see the module docstring for status codes
    """
    provider = provider.lower()
    raw_body = request.body

    if provider not in SUPPORTED_PROVIDERS:
        message = f"Provider {provider!r} is not supported"
        try:
            event = parse_event(raw_body)
        except MalformedWebhookPayloadError:
            event = None
        attempt = _record_rejected(provider, message, raw_body, event)
        logger.warning("Webhook for unsupported provider", extra={"provider": provider, "attempt_id": str(attempt.id)})
        return _error(404, "UNSUPPORTED_PROVIDER", message, attempt.id)

    # Step 1: Parse the envelope
    try:
        event = parse_event(raw_body)
    except MalformedWebhookPayloadError as e:
        attempt = _record_rejected(provider, e.message, raw_body)
        logger.warning("Malformed webhook body", extra={"provider": provider, "attempt_id": str(attempt.id)})
        return _error(400, e.error_code, e.message, attempt.id)

    log_context = {
        "provider": provider,
        "event_id": event.id,
        "object_type": event.object,
        "account_id": event.account_id,
    }

    # Step 2: Authenticate
    signature_valid, auth_error = _authenticate(
        provider, raw_body, request.headers.get(SIGNATURE_HEADER), event.account_id
    )

    # Step 3: Record the attempt before any rejection
    attempt = WebhookAttemptService.record(
        provider=provider,
        event_type=event.object,
        event_id=event.id,
        signature_valid=signature_valid,
        payload=event.raw,
    )
    log_context["attempt_id"] = str(attempt.id)

    if auth_error is not None:
        WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.REJECTED, auth_error.message)
        logger.warning(
            "Webhook authentication failed",
            extra={**log_context, "error_code": auth_error.error_code},
        )
        return _error(401, auth_error.error_code, auth_error.message, attempt.id)

    # Step 4: Apply the event
    try:
        dispatch_webhook(event)

    except MalformedWebhookPayloadError as e:
        WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.REJECTED, e.message)
        logger.warning("Webhook event payload malformed", extra={**log_context, **e.details})
        return _error(400, e.error_code, e.message, attempt.id)

    except ReconciliationError as e:
        WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.FAILED, str(e))
        policy = settings.WEBHOOK_UNMATCHED_CHARGE_POLICY
        logger.warning(
            "Webhook event could not be reconciled",
            extra={**log_context, "error_code": e.error_code, "policy": policy},
        )
        if policy == UNMATCHED_POLICY_RETRY:
            return _error(409, e.error_code, e.message, attempt.id)
        return JsonResponse(
            {"received": True, "attempt_id": str(attempt.id), "error": e.error_code},
            status=200,
        )

    except Exception as e:
        WebhookAttemptService.mark_processed(
            attempt.id,
            WebhookAttemptStatus.FAILED,
            f"{type(e).__name__}: {e}",
        )
        logger.exception("Webhook processing failed", extra=log_context)
        return _error(500, "INTERNAL_ERROR", "Webhook processing failed", attempt.id)

    WebhookAttemptService.mark_processed(attempt.id, WebhookAttemptStatus.PROCESSED)
    logger.info("Webhook processed", extra=log_context)
    return JsonResponse({"received": True, "attempt_id": str(attempt.id)}, status=200)
