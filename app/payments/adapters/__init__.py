"""
External provider adapters for the payments app.

Exports:
    TransfeeraAdapter: Payout API client (batches and Pix transfers)
    TransfeeraTokenManager: Cached OAuth2 client_credentials tokens
    TransferRequest / TransferResult / BatchResult: Adapter data types
    backoff_delay: Jittered exponential backoff shared with Celery retries
"""

from payments.adapters.token_manager import TransfeeraTokenManager
from payments.adapters.transfeera_adapter import (
    BatchResult,
    TransfeeraAdapter,
    TransferRequest,
    TransferResult,
    backoff_delay,
    is_retryable,
)

__all__ = [
    "BatchResult",
    "TransfeeraAdapter",
    "TransfeeraTokenManager",
    "TransferRequest",
    "TransferResult",
    "backoff_delay",
    "is_retryable",
]
