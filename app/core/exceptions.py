"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code and an optional details dict, so the webhook endpoint, the
Celery tasks and the diagnostics API can report failures uniformly.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or payload validation failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (illegal transitions, duplicates)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Withdrawal not found",
        error_code="WITHDRAWAL_NOT_FOUND",
        details={"withdrawal_id": str(withdrawal_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return JsonResponse(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (keys tried, ids, amounts)

    Example:
        try:
            ChargeMatcher.resolve(event_data)
        except NotFoundError as e:
            logger.warning("Charge lookup failed", extra=e.details)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dict with error, error_code, and (when present) details keys
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed webhook payloads, non-positive amounts and other
    service-layer rule violations. DRF serializer validation stays in DRF.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected; list
    queries return empty results instead.
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Invalid state transitions
    - Duplicate records with different content
    - Optimistic locking failures

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Example:
        try:
            response = session.post(url, json=body, timeout=30)
        except requests.ConnectionError as e:
            raise ExternalServiceError(
                "Transfer provider unreachable",
                error_code="PROVIDER_UNAVAILABLE",
                details={"service": "transfeera", "original_error": str(e)},
            )

    Note:
        Log the original error for debugging but don't expose internal
        details to API clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
