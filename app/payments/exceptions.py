"""
Payment-specific exceptions for reconciliation and payout operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── ReconciliationError - Webhook event could not be applied to a charge
    │   ├── ChargeNotFoundError - No charge matched any correlation key
    │   └── ChargeNotPayableError - Matched charge is EXPIRED or CANCELED
    ├── MalformedWebhookPayloadError - Event body missing required fields
    ├── WebhookAuthenticationError - Missing config or bad signature
    ├── WithdrawalNotFoundError - Withdrawal lookup failures
    ├── PaymentValidationError - Business rule violations
    │   ├── PixKeyNotFoundError - User has no Pix key
    │   └── PixKeyNotVerifiedError - User's Pix key is not verified
    └── ProviderError - Base for all transfer provider errors
        ├── ProviderRejectedError - Provider refused the request (permanent)
        ├── ProviderAuthenticationError - Credentials refused (permanent)
        ├── ProviderRateLimitError - Rate limited (transient, retry)
        ├── ProviderUnavailableError - 5xx / connection failure (transient, retry)
        └── ProviderTimeoutError - No answer in time (outcome unknown)

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import ChargeNotFoundError, ProviderError

    raise ChargeNotFoundError(
        "No charge matches CashIn event",
        attempted_keys={"pix_txid": "E123", "external_ref": None},
    )

    try:
        adapter.create_transfer(batch_id, request)
    except ProviderError as e:
        if e.outcome_unknown:
            ...  # leave the withdrawal untouched and wait for the webhook
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            WithdrawalOrchestrator.handle_provider_status(transfer_id, status)
        except PaymentError as e:
            logger.error("Payout update failed", extra=e.to_dict())
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when a payment business rule is violated.

    Example:
        if amount_cents <= 0:
            raise PaymentValidationError(
                "Withdrawal amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount_cents": amount_cents},
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class WithdrawalNotFoundError(PaymentError, NotFoundError):
    """Raised when a withdrawal lookup by id fails."""

    default_error_code: str = "WITHDRAWAL_NOT_FOUND"


class PixKeyNotFoundError(PaymentValidationError):
    """Raised when a withdrawal is submitted for a user with no Pix key."""

    default_error_code: str = "PIX_KEY_NOT_FOUND"


class PixKeyNotVerifiedError(PaymentValidationError):
    """Raised when the user's Pix key has not been verified yet."""

    default_error_code: str = "PIX_KEY_NOT_VERIFIED"


# =============================================================================
# Webhook & Reconciliation Exceptions
# =============================================================================


class MalformedWebhookPayloadError(PaymentError, ValidationError):
    """
    Raised when a webhook body cannot be interpreted.

    Covers invalid JSON and events missing the fields their handler needs
    (e.g. a CashIn with neither txid nor integration_id).
    """

    default_error_code: str = "MALFORMED_WEBHOOK_PAYLOAD"


class WebhookAuthenticationError(PaymentError):
    """
    Raised when a webhook delivery cannot be authenticated.

    Error codes:
        WEBHOOK_CONFIG_NOT_FOUND: No active config for the event's account
        INVALID_SIGNATURE: Header missing, malformed or digest mismatch
        SIGNATURE_EXPIRED: Timestamp outside the allowed clock skew
    """

    default_error_code: str = "INVALID_SIGNATURE"


class ReconciliationError(PaymentError):
    """Base for events that authenticate but cannot be applied to a charge."""

    default_error_code: str = "RECONCILIATION_ERROR"


class ChargeNotFoundError(ReconciliationError, NotFoundError):
    """
    Raised when no charge matches an incoming-payment event.

    The correlation keys that were tried are kept in ``attempted_keys``
    (and in ``details``) so the failed WebhookAttempt explains itself.
    """

    default_error_code: str = "CHARGE_NOT_FOUND"

    def __init__(
        self,
        message: str,
        attempted_keys: dict[str, str | None],
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.attempted_keys = attempted_keys
        full_details = {"attempted_keys": attempted_keys}
        if details:
            full_details.update(details)
        super().__init__(message, error_code=error_code, details=full_details)


class ChargeNotPayableError(ReconciliationError, ConflictError):
    """
    Raised when money arrives for a charge that is EXPIRED or CANCELED.

    The payment is real, so this is surfaced for manual review instead of
    being dropped or silently credited.
    """

    default_error_code: str = "CHARGE_NOT_PAYABLE"


# =============================================================================
# Provider Exceptions
# =============================================================================


class ProviderError(PaymentError, ExternalServiceError):
    """
    Base exception for all transfer provider errors.

    Attributes:
        status_code: HTTP status returned by the provider, if any
        is_retryable: Transient error, safe to retry with backoff
        outcome_unknown: The provider may have acted on the request; the
            caller must not assume success or failure

    Example:
        try:
            adapter.create_batch("Saque #1a2b3c4d")
        except ProviderError as e:
            if e.is_retryable:
                schedule_retry(e)
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False
    outcome_unknown: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class ProviderRejectedError(ProviderError):
    """
    The provider refused the request (4xx other than auth and rate limit).

    Permanent: retrying the same request gets the same answer.
    """

    default_error_code: str = "PROVIDER_REJECTED"


class ProviderAuthenticationError(ProviderError):
    """Client credentials were refused, or a fresh token was refused again."""

    default_error_code: str = "PROVIDER_AUTHENTICATION_FAILED"


class ProviderRateLimitError(ProviderError):
    """Rate limited by the provider (HTTP 429)."""

    default_error_code: str = "PROVIDER_RATE_LIMITED"
    is_retryable: bool = True


class ProviderUnavailableError(ProviderError):
    """
    The provider is temporarily unavailable.

    Covers connection failures, DNS and TLS errors and 5xx responses.
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"
    is_retryable: bool = True


class ProviderTimeoutError(ProviderError):
    """
    The provider did not answer in time.

    The request may or may not have been applied. Callers leave the
    affected record as it is and wait for the webhook or the reconciliation
    poll to report the real outcome.
    """

    default_error_code: str = "PROVIDER_OUTCOME_UNKNOWN"
    outcome_unknown: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an FSM state transition is not allowed.

    Example:
        if not can_proceed(withdrawal.complete):
            raise InvalidStateTransitionError(
                f"Cannot complete withdrawal from {withdrawal.status!r}",
                details={"current_state": withdrawal.status, "target_state": "completed"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
