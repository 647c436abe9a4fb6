"""
Data types for ledger operations.

Types:
    LedgerEntryParams: Parameters for appending one ledger entry
    Balance: Posted and available balance of one account

Usage:
    from payments.ledger.types import Balance, LedgerEntryParams

    params = LedgerEntryParams(
        user_id=merchant_id,
        entry_type=EntryType.CHARGE_NET,
        status=EntryStatus.POSTED,
        amount_cents=10000,
        is_credit=True,
        reference_type=ReferenceType.CHARGE,
        reference_id=charge.id,
        idempotency_key=f"charge_net:{charge.id}",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from .models import EntryStatus


@dataclass
class LedgerEntryParams:
    """
    Parameters for appending a ledger entry.

    Required Attributes:
        user_id: Account owner
        entry_type: EntryType value
        status: Initial status, PENDING or POSTED
        amount_cents: Positive magnitude in centavos
        is_credit: Direction flag
        reference_type: ReferenceType value
        reference_id: UUID of the related record
        idempotency_key: Unique key; replays with the same key are no-ops

    Optional Attributes:
        description: Human-readable description
        occurred_at: Business time of the movement (defaults to now)

    Raises:
        ValueError: On non-positive amounts, a missing key or a terminal
            initial status
    """

    user_id: uuid.UUID
    entry_type: str
    status: str
    amount_cents: int
    is_credit: bool
    reference_type: str
    reference_id: uuid.UUID
    idempotency_key: str
    description: str = ""
    occurred_at: datetime | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if self.status not in (EntryStatus.PENDING, EntryStatus.POSTED):
            raise ValueError("entries are appended as pending or posted")


@dataclass(frozen=True)
class Balance:
    """
    Balance of one ledger account, in centavos.

    Attributes:
        posted_balance: Posted credits minus posted debits
        available: posted_balance minus pending withdrawal debits and fees

    Example:
        balance = Balance(posted_balance=20000, available=9850)
        balance.pending_withdrawals  # 10150
    """

    posted_balance: int
    available: int

    @property
    def pending_withdrawals(self) -> int:
        """Amount committed to in-flight withdrawals."""
        return self.posted_balance - self.available

    def to_dict(self) -> dict[str, int]:
        return {
            "posted_balance": self.posted_balance,
            "available": self.available,
            "pending_withdrawals": self.pending_withdrawals,
        }
