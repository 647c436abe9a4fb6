"""
Ledger service layer.

All ledger writes go through LedgerService so appends stay idempotent and
status changes stay within PENDING -> POSTED / PENDING -> CANCELED.

Usage:
    from payments.ledger.services import ledger
    from payments.ledger.types import LedgerEntryParams

    ledger.append_entries([LedgerEntryParams(...), LedgerEntryParams(...)])
    ledger.transition_status([entry.id for entry in entries], EntryStatus.POSTED)
    balance = ledger.get_balance(user_id)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from django.db import IntegrityError, transaction
from django.utils import timezone

from .balance import calculate_balance
from .exceptions import InvalidLedgerTransition, LedgerInvariantViolation
from .models import EntryStatus, LedgerAccount, LedgerEntry
from .types import Balance, LedgerEntryParams

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = ("user_id", "entry_type", "amount_cents", "is_credit", "reference_type", "reference_id")


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Atomic multi-entry appends
    - Idempotency via unique keys (safe to retry)
    - Conditional status transitions (safe under concurrent callers)

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def append_entries(entries: list[LedgerEntryParams]) -> list[LedgerEntry]:
        """
        Append ledger entries atomically.

        All entries are written or none are. Replaying an entry whose
        idempotency key already exists returns the stored entry, provided it
        describes the same movement.

        Args:
            entries: Parameters of the entries to append

        Returns:
            The stored entries, in the order given

        Raises:
            LedgerInvariantViolation: If a key already exists with different
                owner, amount, direction, type or reference
        """
        if not entries:
            return []

        keys = [params.idempotency_key for params in entries]
        if len(set(keys)) != len(keys):
            raise LedgerInvariantViolation(
                "Duplicate idempotency keys in a single append",
                details={"idempotency_keys": keys},
            )

        with transaction.atomic():
            existing = {
                entry.idempotency_key: entry
                for entry in LedgerEntry.objects.filter(idempotency_key__in=keys)
            }
            pending = [
                LedgerService._build_entry(params)
                for params in entries
                if params.idempotency_key not in existing
            ]

            if pending:
                try:
                    with transaction.atomic():
                        LedgerEntry.objects.bulk_create(pending)
                except IntegrityError:
                    # A concurrent writer inserted one of the keys first.
                    existing = {
                        entry.idempotency_key: entry
                        for entry in LedgerEntry.objects.filter(idempotency_key__in=keys)
                    }
                    pending = [
                        LedgerService._build_entry(params)
                        for params in entries
                        if params.idempotency_key not in existing
                    ]
                    LedgerEntry.objects.bulk_create(pending)

            created = {entry.idempotency_key: entry for entry in pending}
            results: list[LedgerEntry] = []
            for params in entries:
                if params.idempotency_key in created:
                    results.append(created[params.idempotency_key])
                    continue
                stored = existing[params.idempotency_key]
                LedgerService._assert_same_movement(stored, params)
                results.append(stored)

        if pending:
            logger.info(
                "Ledger entries appended",
                extra={
                    "entry_count": len(pending),
                    "idempotency_keys": [entry.idempotency_key for entry in pending],
                },
            )
        return results

    @staticmethod
    def append_entry(params: LedgerEntryParams) -> LedgerEntry:
        """Append a single entry. See append_entries()."""
        return LedgerService.append_entries([params])[0]

    @staticmethod
    def transition_status(entry_ids: Iterable[uuid.UUID], new_status: str) -> int:
        """
        Move PENDING entries to POSTED or CANCELED.

        The update is conditional on the current status, so entries that
        already left PENDING are skipped rather than overwritten.

        Args:
            entry_ids: Entries to transition
            new_status: EntryStatus.POSTED or EntryStatus.CANCELED

        Returns:
            Number of entries that changed status

        Raises:
            InvalidLedgerTransition: If new_status is not POSTED or CANCELED
        """
        if new_status not in (EntryStatus.POSTED, EntryStatus.CANCELED):
            raise InvalidLedgerTransition(
                f"Ledger entries cannot transition to {new_status!r}",
                details={"new_status": str(new_status)},
            )

        ids = list(entry_ids)
        if not ids:
            return 0

        updated = LedgerEntry.objects.filter(id__in=ids, status=EntryStatus.PENDING).update(
            status=new_status,
            status_changed_at=timezone.now(),
        )
        if updated != len(ids):
            logger.info(
                "Some ledger entries were no longer pending",
                extra={"requested": len(ids), "updated": updated, "new_status": str(new_status)},
            )
        return updated

    @staticmethod
    def calculate_balance(entries) -> Balance:
        """Pure balance computation. See payments.ledger.balance."""
        return calculate_balance(entries)

    @staticmethod
    def lock_account(user_id: uuid.UUID) -> LedgerAccount:
        """
        Lock an owner's account row until the surrounding transaction ends.

        The row is created on first use. Entries read after this call include
        everything committed by the previous holder of the lock, so a balance
        check followed by a debit cannot interleave with another one.

        Must be called inside transaction.atomic().

        Args:
            user_id: Account owner

        Returns:
            The locked LedgerAccount
        """
        LedgerAccount.objects.get_or_create(user_id=user_id)
        return LedgerAccount.objects.select_for_update().get(user_id=user_id)

    @staticmethod
    def get_balance(user_id: uuid.UUID, for_update: bool = False) -> Balance:
        """
        Load an account's entries and compute its balance.

        Args:
            user_id: Account owner
            for_update: Lock the account (lock_account) before reading, for a
                check that precedes a debit (use inside transaction.atomic())

        Returns:
            Balance for the account
        """
        if for_update:
            LedgerService.lock_account(user_id)
        queryset = LedgerEntry.objects.filter(user_id=user_id).only(
            "id", "entry_type", "status", "amount_cents", "is_credit"
        )
        return calculate_balance(queryset)

    @staticmethod
    def get_entries_for_user(
        user_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """
        Get an account's entries, newest first.

        Args:
            user_id: Account owner
            limit: Maximum number of entries to return (default: 100)
            offset: Number of entries to skip (default: 0)
        """
        return list(LedgerEntry.objects.filter(user_id=user_id).order_by("-created_at")[offset : offset + limit])

    @staticmethod
    def get_entries_by_reference(reference_type: str, reference_id: uuid.UUID) -> list[LedgerEntry]:
        """
        Get all entries linked to a business record, oldest first.

        Args:
            reference_type: ReferenceType value
            reference_id: UUID of the record
        """
        return list(
            LedgerEntry.objects.filter(reference_type=reference_type, reference_id=reference_id).order_by(
                "created_at"
            )
        )

    # ==========================================================================
    # Internal helpers
    # ==========================================================================

    @staticmethod
    def _build_entry(params: LedgerEntryParams) -> LedgerEntry:
        return LedgerEntry(
            user_id=params.user_id,
            entry_type=params.entry_type,
            status=params.status,
            amount_cents=params.amount_cents,
            is_credit=params.is_credit,
            reference_type=params.reference_type,
            reference_id=params.reference_id,
            idempotency_key=params.idempotency_key,
            description=params.description,
            occurred_at=params.occurred_at or timezone.now(),
        )

    @staticmethod
    def _assert_same_movement(stored: LedgerEntry, params: LedgerEntryParams) -> None:
        mismatched = [
            name
            for name in _IMMUTABLE_FIELDS
            if str(getattr(stored, name)) != str(getattr(params, name))
        ]
        if mismatched:
            logger.critical(
                "Ledger idempotency key reused for a different movement",
                extra={
                    "idempotency_key": params.idempotency_key,
                    "entry_id": str(stored.id),
                    "mismatched_fields": mismatched,
                },
            )
            raise LedgerInvariantViolation(
                "Idempotency key already used for a different ledger movement",
                details={
                    "idempotency_key": params.idempotency_key,
                    "entry_id": str(stored.id),
                    "mismatched_fields": mismatched,
                },
            )


# Singleton instance for convenience
ledger = LedgerService()
