"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── InsufficientBalance - Available balance too low for a debit
    ├── InvalidLedgerTransition - Status change other than PENDING -> POSTED/CANCELED
    └── LedgerInvariantViolation - Conflicting duplicate of an existing entry

Usage:
    from payments.ledger.exceptions import InsufficientBalance

    if balance.available < total:
        raise InsufficientBalance(user_id, required=total, available=balance.available)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class InsufficientBalance(LedgerError):
    """
    Raised when an account's available balance cannot cover a debit.

    Attributes:
        user_id: The account owner
        required: The amount (in centavos) that was required
        available: The amount (in centavos) that was available
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        user_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.user_id = user_id
        self.required = required
        self.available = available

        full_details = {
            "user_id": str(user_id),
            "required_cents": required,
            "available_cents": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Account {user_id} has insufficient balance: "
                f"required {required} cents, available {available} cents"
            ),
            error_code=error_code,
            details=full_details,
        )


class InvalidLedgerTransition(LedgerError, ConflictError):
    """
    Raised when asked to move entries to a status other than POSTED or CANCELED.

    Only PENDING -> POSTED and PENDING -> CANCELED exist.
    """

    default_error_code: str = "INVALID_LEDGER_TRANSITION"


class LedgerInvariantViolation(LedgerError):
    """
    Raised when an append would contradict an existing entry.

    An idempotency key that already maps to an entry with a different
    owner, amount, direction or type means two code paths disagree about
    the same money movement. This is never repaired automatically.
    """

    default_error_code: str = "LEDGER_INVARIANT_VIOLATION"
