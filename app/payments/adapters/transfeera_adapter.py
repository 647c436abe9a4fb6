"""
Transfeera transfer API adapter.

Wraps the subset of the Transfeera REST API used for payouts and translates
HTTP failures into domain exceptions.

Features:
- Bearer authentication through TransfeeraTokenManager, with one token
  refresh and retry when the API answers 401
- Bounded retry with jittered exponential backoff for connection errors,
  429 and 5xx responses
- Read timeouts raised at once as ProviderTimeoutError: the request may
  have been applied, so it is never repeated in-process
- Typed results (BatchResult, TransferResult) keeping the raw response

Configuration (settings):
    TRANSFEERA_API_URL: Base URL of the API
    TRANSFEERA_TIMEOUT_SECONDS: Per-request timeout (default 30)
    TRANSFEERA_MAX_RETRIES: Retries for transient failures (default 3)
    TRANSFEERA_USER_AGENT: User-Agent sent with every request

Usage:
    from payments.adapters import TransfeeraAdapter, TransferRequest

    adapter = TransfeeraAdapter()
    batch = adapter.create_batch(f"Saque #{str(withdrawal.id)[:8]}")
    transfer = adapter.create_transfer(
        batch.id,
        TransferRequest(
            amount_cents=withdrawal.amount_cents,
            idempotency_key=withdrawal.idempotency_key,
            pix_key=pix_key.key,
            pix_key_type=pix_key.key_type,
            owner_document=pix_key.owner_document,
        ),
    )
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

import requests
from django.conf import settings

from payments.adapters.token_manager import TransfeeraTokenManager
from payments.exceptions import (
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRejectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

BATCH_TYPE_TRANSFER = "TRANSFERENCIA"


# =============================================================================
# Retry Helpers
# =============================================================================


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Exponential backoff with up to 25% jitter.

    Args:
        attempt: Zero-based retry number
        base: Delay of the first retry in seconds
        max_delay: Upper bound before jitter

    Returns:
        Seconds to wait before the next attempt
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def is_retryable(error: Exception) -> bool:
    """Check whether an error is transient and safe to retry."""
    return bool(getattr(error, "is_retryable", False))


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class TransferRequest:
    """
    A Pix transfer to add to a batch.

    Attributes:
        amount_cents: Amount in centavos (sent to the API in reais)
        idempotency_key: Provider-side deduplication key
        pix_key: Destination Pix key
        pix_key_type: Transfeera key type (CPF, CNPJ, EMAIL, TELEFONE, CHAVE_ALEATORIA)
        owner_document: CPF/CNPJ the key must belong to
        description: Text shown on the recipient's statement
        integration_id: Our record id, echoed back in transfer webhooks
    """

    amount_cents: int
    idempotency_key: str
    pix_key: str
    pix_key_type: str
    owner_document: str
    description: str = ""
    integration_id: str | None = None

    def __post_init__(self):
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")

    @property
    def value(self) -> float:
        """Amount in reais with two decimals."""
        return float(Decimal(self.amount_cents) / 100)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body for ``POST /batch/{id}/transfer``."""
        payload = {
            "value": self.value,
            "idempotency_key": self.idempotency_key,
            "pix_description": self.description,
            "destination_bank_account": {
                "pix_key_type": self.pix_key_type,
                "pix_key": self.pix_key,
            },
            "pix_key_validation": {
                "cpf_cnpj": self.owner_document,
            },
        }
        if self.integration_id:
            payload["integration_id"] = self.integration_id
        return payload


@dataclass
class BatchResult:
    """A Transfeera batch."""

    id: str
    status: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    A Transfeera transfer.

    Attributes:
        id: Provider transfer id (None if the response carried none)
        status: Provider status (CRIADA, FINALIZADO, DEVOLVIDO, ...)
        batch_id: Batch the transfer belongs to
        error_message: Provider explanation for a failed transfer
        integration_id: The integration_id sent when the transfer was created
        raw_response: Full response body
    """

    id: str | None
    status: str | None = None
    batch_id: str | None = None
    error_message: str | None = None
    integration_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any], batch_id: str | None = None) -> TransferResult:
        transfer_id = data.get("id")
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        return cls(
            id=str(transfer_id) if transfer_id is not None else None,
            status=data.get("status"),
            batch_id=str(data.get("batch_id") or batch_id or "") or None,
            error_message=error or data.get("bank_return_message"),
            integration_id=str(data["integration_id"]) if data.get("integration_id") else None,
            raw_response=data,
        )


# =============================================================================
# Adapter
# =============================================================================


class TransfeeraAdapter:
    """
    HTTP client for the Transfeera payout endpoints.

    Instances hold a requests.Session and are safe to reuse; the
    orchestrator keeps one per process.
    """

    def __init__(
        self,
        token_manager: TransfeeraTokenManager | None = None,
        session: requests.Session | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        sleep=time.sleep,
    ):
        self.session = session or requests.Session()
        self.token_manager = token_manager or TransfeeraTokenManager(session=self.session)
        self.api_url = (api_url or settings.TRANSFEERA_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TRANSFEERA_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.TRANSFEERA_MAX_RETRIES
        self._sleep = sleep

    # ==========================================================================
    # Batches
    # ==========================================================================

    def create_batch(self, name: str, auto_close: bool = True) -> BatchResult:
        """
        Create a transfer batch.

        Args:
            name: Batch name shown in the Transfeera dashboard
            auto_close: Let Transfeera close the batch once it has a transfer

        Returns:
            BatchResult with the new batch id
        """
        data = self._request(
            "POST",
            "/batch",
            json={"name": name, "type": BATCH_TYPE_TRANSFER, "auto_close": auto_close},
            operation="create_batch",
        )
        return self._batch_result(data)

    def get_batch(self, batch_id: str) -> BatchResult:
        """Fetch a batch by id."""
        data = self._request("GET", f"/batch/{batch_id}", operation="get_batch")
        return self._batch_result(data, batch_id)

    def close_batch(self, batch_id: str) -> BatchResult:
        """Close a batch so its transfers are sent."""
        data = self._request("POST", f"/batch/{batch_id}/close", operation="close_batch")
        return self._batch_result(data, batch_id)

    # ==========================================================================
    # Transfers
    # ==========================================================================

    def create_transfer(self, batch_id: str, transfer: TransferRequest) -> TransferResult:
        """
        Add a Pix transfer to a batch.

        Args:
            batch_id: Batch returned by create_batch
            transfer: Transfer details

        Returns:
            TransferResult with the provider transfer id and status

        Raises:
            ProviderTimeoutError: No answer in time; the transfer may exist
            ProviderRejectedError: Invalid key, document mismatch, etc.
        """
        data = self._request(
            "POST",
            f"/batch/{batch_id}/transfer",
            json=transfer.to_payload(),
            operation="create_transfer",
            log_extra={"idempotency_key": transfer.idempotency_key},
        )
        return TransferResult.from_response(data, batch_id=batch_id)

    def get_transfer(self, transfer_id: str) -> TransferResult:
        """Fetch the current state of a transfer."""
        data = self._request("GET", f"/transfer/{transfer_id}", operation="get_transfer")
        result = TransferResult.from_response(data)
        if result.id is None:
            result.id = str(transfer_id)
        return result

    def list_batch_transfers(self, batch_id: str) -> list[TransferResult]:
        """
        List the transfers added to a batch.

        Used to find a transfer whose creation call timed out, since its id
        never reached us.
        """
        data = self._request("GET", f"/batch/{batch_id}/transfer", operation="list_batch_transfers", many=True)
        return [TransferResult.from_response(item, batch_id=batch_id) for item in data]

    # ==========================================================================
    # Internal
    # ==========================================================================

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        operation: str = "",
        log_extra: dict[str, Any] | None = None,
        many: bool = False,
    ) -> Any:
        """
        Send one API call with auth refresh and transient-error retries.

        Returns the decoded body: a dict, or a list of dicts when ``many``.

        Raises:
            ProviderTimeoutError: Read timeout, outcome unknown
            ProviderRateLimitError / ProviderUnavailableError: Retries exhausted
            ProviderAuthenticationError: 401 after a token refresh
            ProviderRejectedError: Other 4xx
        """
        url = f"{self.api_url}{path}"
        log_context = {"operation": operation, "method": method, "path": path, **(log_extra or {})}
        attempt = 0
        token_refreshed = False

        while True:
            headers = {
                "Authorization": f"Bearer {self.token_manager.get_valid_token()}",
                "Content-Type": "application/json",
                "User-Agent": settings.TRANSFEERA_USER_AGENT,
            }
            started = time.monotonic()
            try:
                response = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
            except requests.ConnectTimeout as e:
                error: ProviderError = ProviderUnavailableError(
                    "Could not connect to Transfeera",
                    details={"error": str(e)},
                )
            except requests.Timeout as e:
                logger.error("Transfeera request timed out", extra={**log_context, "timeout": self.timeout})
                raise ProviderTimeoutError(
                    f"Transfeera did not answer {operation} within {self.timeout}s",
                    details={"operation": operation},
                ) from e
            except requests.ConnectionError as e:
                error = ProviderUnavailableError(
                    "Connection to Transfeera failed",
                    details={"error": str(e)},
                )
            else:
                duration_ms = (time.monotonic() - started) * 1000
                if response.status_code == 401 and not token_refreshed:
                    logger.info("Transfeera token rejected, refreshing", extra=log_context)
                    self.token_manager.invalidate()
                    token_refreshed = True
                    continue

                if response.ok:
                    logger.info(
                        "Transfeera request succeeded",
                        extra={**log_context, "status_code": response.status_code, "duration_ms": round(duration_ms, 2)},
                    )
                    return self._json_list(response) if many else self._json(response)

                error = self._translate_error(response)

            if is_retryable(error) and attempt < self.max_retries:
                delay = backoff_delay(attempt)
                logger.warning(
                    "Transient Transfeera error, retrying",
                    extra={**log_context, "attempt": attempt + 1, "delay": round(delay, 2), "error_code": error.error_code},
                )
                self._sleep(delay)
                attempt += 1
                continue

            logger.error(
                "Transfeera request failed",
                extra={**log_context, "error_code": error.error_code, "status_code": error.status_code},
            )
            raise error

    def _translate_error(self, response: requests.Response) -> ProviderError:
        status = response.status_code
        body = self._json(response)
        message = body.get("message") or body.get("error") or response.reason or f"HTTP {status}"
        details = {"response": body} if body else {}

        if status == 401 or status == 403:
            return ProviderAuthenticationError(str(message), status_code=status, details=details)
        if status == 429:
            return ProviderRateLimitError(str(message), status_code=status, details=details)
        if status >= 500:
            return ProviderUnavailableError(str(message), status_code=status, details=details)
        return ProviderRejectedError(str(message), status_code=status, details=details)

    @staticmethod
    def _batch_result(data: dict[str, Any], batch_id: str | None = None) -> BatchResult:
        returned_id = data.get("id")
        return BatchResult(
            id=str(returned_id) if returned_id is not None else str(batch_id or ""),
            status=data.get("status"),
            raw_response=data,
        )

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _json_list(response: requests.Response) -> list[dict[str, Any]]:
        try:
            data = response.json()
        except ValueError:
            return []
        if isinstance(data, dict):
            data = data.get("data", [])
        return [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []
