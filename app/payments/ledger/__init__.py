"""
Ledger - per-account money movements with a pending/posted/canceled lifecycle.

Public API:
    Models:
        LedgerEntry - One money movement on one owner's account
        LedgerAccount - Per-owner row locked before balance-checked debits
        EntryType - CHARGE_NET, WITHDRAWAL_DEBIT, WITHDRAWAL_FEE, ADJUSTMENT
        EntryStatus - PENDING, POSTED, CANCELED
        ReferenceType - Business records entries point back to

    Service:
        ledger - Singleton instance of LedgerService
        LedgerService - append_entries, transition_status, lock_account, get_balance, ...

    Balance:
        calculate_balance - Pure posted/available computation
        Balance - Result of calculate_balance

    Exceptions:
        LedgerError, InsufficientBalance, InvalidLedgerTransition,
        LedgerInvariantViolation

Usage:
    from payments.ledger import EntryStatus, calculate_balance, ledger

    entries = ledger.get_entries_by_reference(ReferenceType.WITHDRAWAL, withdrawal.id)
    ledger.transition_status([e.id for e in entries], EntryStatus.CANCELED)

    balance = calculate_balance(entries)
    print(balance.posted_balance, balance.available)
"""

from .balance import calculate_balance
from .exceptions import (
    InsufficientBalance,
    InvalidLedgerTransition,
    LedgerError,
    LedgerInvariantViolation,
)
from .models import EntryStatus, EntryType, LedgerAccount, LedgerEntry, ReferenceType
from .services import LedgerService, ledger
from .types import Balance, LedgerEntryParams

__all__ = [
    # Models
    "LedgerAccount",
    "LedgerEntry",
    "EntryStatus",
    "EntryType",
    "ReferenceType",
    # Service
    "ledger",
    "LedgerService",
    # Balance
    "calculate_balance",
    "Balance",
    "LedgerEntryParams",
    # Exceptions
    "LedgerError",
    "InsufficientBalance",
    "InvalidLedgerTransition",
    "LedgerInvariantViolation",
]
