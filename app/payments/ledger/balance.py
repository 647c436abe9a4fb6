"""
Pure balance computation over ledger entries.

No database access happens here: callers load the entries (model
instances or any objects with the same attributes) and pass them in.

Rules:
    posted_balance = sum(posted credits) - sum(posted debits)
    pending_withdrawals = sum(PENDING withdrawal debits and fees)
    available = posted_balance - pending_withdrawals

Only withdrawal-type pending entries reduce availability, so money already
promised to an in-flight payout cannot be spent twice.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .models import EntryStatus, EntryType
from .types import Balance


class BalanceEntry(Protocol):
    """Attributes calculate_balance reads from each entry."""

    entry_type: str
    status: str
    amount_cents: int
    is_credit: bool


def calculate_balance(entries: Iterable[BalanceEntry]) -> Balance:
    """
    Compute posted and available balance from ledger entries.

    Args:
        entries: Entries of a single account, in any order

    Returns:
        Balance with posted_balance and available, in centavos

    Example:
        >>> calculate_balance([])
        Balance(posted_balance=0, available=0)
    """
    posted = 0
    pending_withdrawals = 0
    withdrawal_types = EntryType.withdrawal_types()

    for entry in entries:
        if entry.status == EntryStatus.POSTED:
            posted += entry.amount_cents if entry.is_credit else -entry.amount_cents
        elif entry.status == EntryStatus.PENDING and entry.entry_type in withdrawal_types:
            pending_withdrawals += entry.amount_cents

    return Balance(posted_balance=posted, available=posted - pending_withdrawals)
