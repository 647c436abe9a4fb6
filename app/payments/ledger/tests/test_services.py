"""
Tests for LedgerService.

This module tests the service layer for ledger operations: idempotent
appends, conditional status transitions and balance queries.
"""

import uuid

import pytest

from payments.ledger.exceptions import InvalidLedgerTransition, LedgerInvariantViolation
from payments.ledger.models import EntryStatus, EntryType, LedgerAccount, LedgerEntry, ReferenceType
from payments.ledger.services import LedgerService, ledger
from payments.ledger.tests.factories import LedgerEntryFactory
from payments.ledger.types import LedgerEntryParams


def make_params(user_id, key, amount_cents=10000, is_credit=True, status=EntryStatus.POSTED, **overrides):
    values = {
        "user_id": user_id,
        "entry_type": EntryType.CHARGE_NET if is_credit else EntryType.WITHDRAWAL_DEBIT,
        "status": status,
        "amount_cents": amount_cents,
        "is_credit": is_credit,
        "reference_type": ReferenceType.CHARGE,
        "reference_id": overrides.pop("reference_id", uuid.UUID(int=1)),
        "idempotency_key": key,
    }
    values.update(overrides)
    return LedgerEntryParams(**values)


class TestLedgerEntryParams:
    def test_rejects_non_positive_amount(self, user_id):
        with pytest.raises(ValueError, match="positive"):
            make_params(user_id, "k", amount_cents=0)

    def test_requires_idempotency_key(self, user_id):
        with pytest.raises(ValueError, match="idempotency_key"):
            make_params(user_id, "")

    def test_rejects_terminal_initial_status(self, user_id):
        with pytest.raises(ValueError):
            make_params(user_id, "k", status=EntryStatus.CANCELED)


class TestAppendEntries:
    """Tests for LedgerService.append_entries()."""

    def test_appends_all_entries(self, db, user_id):
        entries = ledger.append_entries(
            [
                make_params(user_id, "debit:1", 10000, is_credit=False, status=EntryStatus.PENDING),
                make_params(user_id, "fee:1", 150, is_credit=False, status=EntryStatus.PENDING),
            ]
        )

        assert [e.idempotency_key for e in entries] == ["debit:1", "fee:1"]
        assert LedgerEntry.objects.filter(user_id=user_id).count() == 2

    def test_empty_list_is_noop(self, db):
        assert ledger.append_entries([]) == []

    def test_replay_returns_stored_entry(self, db, user_id):
        first = ledger.append_entry(make_params(user_id, "charge_net:abc"))
        second = ledger.append_entry(make_params(user_id, "charge_net:abc"))

        assert first.id == second.id
        assert LedgerEntry.objects.filter(idempotency_key="charge_net:abc").count() == 1

    def test_partial_replay_creates_only_new_entries(self, db, user_id):
        ledger.append_entry(make_params(user_id, "a"))

        entries = ledger.append_entries([make_params(user_id, "a"), make_params(user_id, "b", 500)])

        assert len(entries) == 2
        assert LedgerEntry.objects.filter(user_id=user_id).count() == 2

    def test_conflicting_replay_raises(self, db, user_id):
        ledger.append_entry(make_params(user_id, "charge_net:abc", 10000))

        with pytest.raises(LedgerInvariantViolation) as exc_info:
            ledger.append_entry(make_params(user_id, "charge_net:abc", 9999))

        assert "amount_cents" in exc_info.value.details["mismatched_fields"]

    def test_conflict_rolls_back_whole_append(self, db, user_id):
        ledger.append_entry(make_params(user_id, "existing", 10000))

        with pytest.raises(LedgerInvariantViolation):
            ledger.append_entries(
                [
                    make_params(user_id, "new", 500),
                    make_params(user_id, "existing", 1),
                ]
            )

        assert not LedgerEntry.objects.filter(idempotency_key="new").exists()

    def test_duplicate_keys_in_one_call_rejected(self, db, user_id):
        with pytest.raises(LedgerInvariantViolation):
            ledger.append_entries([make_params(user_id, "dup"), make_params(user_id, "dup")])

        assert LedgerEntry.objects.count() == 0


class TestTransitionStatus:
    """Tests for LedgerService.transition_status()."""

    def test_pending_to_posted(self, db):
        entry = LedgerEntryFactory(status=EntryStatus.PENDING)

        changed = ledger.transition_status([entry.id], EntryStatus.POSTED)

        entry.refresh_from_db()
        assert changed == 1
        assert entry.status == EntryStatus.POSTED
        assert entry.status_changed_at is not None

    def test_pending_to_canceled(self, db):
        entry = LedgerEntryFactory(status=EntryStatus.PENDING)

        ledger.transition_status([entry.id], EntryStatus.CANCELED)

        entry.refresh_from_db()
        assert entry.status == EntryStatus.CANCELED

    @pytest.mark.parametrize("current", [EntryStatus.POSTED, EntryStatus.CANCELED])
    def test_non_pending_entries_are_not_overwritten(self, db, current):
        entry = LedgerEntryFactory(status=current)
        target = EntryStatus.CANCELED if current == EntryStatus.POSTED else EntryStatus.POSTED

        changed = ledger.transition_status([entry.id], target)

        entry.refresh_from_db()
        assert changed == 0
        assert entry.status == current

    def test_rejects_pending_as_target(self, db):
        entry = LedgerEntryFactory(status=EntryStatus.PENDING)

        with pytest.raises(InvalidLedgerTransition):
            ledger.transition_status([entry.id], EntryStatus.PENDING)

    def test_empty_ids(self, db):
        assert ledger.transition_status([], EntryStatus.POSTED) == 0


class TestQueries:
    def test_get_balance(self, db, user_id):
        LedgerEntryFactory(user_id=user_id, amount_cents=20000)
        LedgerEntryFactory(
            user_id=user_id,
            amount_cents=10000,
            is_credit=False,
            entry_type=EntryType.WITHDRAWAL_DEBIT,
            status=EntryStatus.PENDING,
        )
        LedgerEntryFactory(amount_cents=50000)  # another account

        balance = LedgerService.get_balance(user_id)

        assert balance.posted_balance == 20000
        assert balance.available == 10000

    def test_get_balance_for_update(self, db, user_id):
        LedgerEntryFactory(user_id=user_id, amount_cents=700)

        assert ledger.get_balance(user_id, for_update=True).available == 700
        assert LedgerAccount.objects.filter(user_id=user_id).exists()

    def test_get_balance_for_update_reads_entries_after_lock(self, db, user_id, mocker):
        real_lock = LedgerService.lock_account

        def lock_then_other_writer_commits(owner_id):
            account = real_lock(owner_id)
            LedgerEntryFactory(user_id=owner_id, amount_cents=300)
            return account

        lock = mocker.patch.object(LedgerService, "lock_account", side_effect=lock_then_other_writer_commits)

        assert ledger.get_balance(user_id, for_update=True).available == 300
        lock.assert_called_once_with(user_id)

    def test_lock_account_creates_row_once(self, db, user_id):
        first = ledger.lock_account(user_id)
        second = ledger.lock_account(user_id)

        assert first.user_id == second.user_id == user_id
        assert LedgerAccount.objects.filter(user_id=user_id).count() == 1

    def test_plain_get_balance_takes_no_lock(self, db, user_id):
        ledger.get_balance(user_id)

        assert not LedgerAccount.objects.exists()

    def test_get_entries_by_reference(self, db):
        reference_id = uuid.uuid4()
        first = LedgerEntryFactory(reference_type=ReferenceType.WITHDRAWAL, reference_id=reference_id)
        second = LedgerEntryFactory(reference_type=ReferenceType.WITHDRAWAL, reference_id=reference_id)
        LedgerEntryFactory(reference_type=ReferenceType.CHARGE, reference_id=reference_id)

        entries = ledger.get_entries_by_reference(ReferenceType.WITHDRAWAL, reference_id)

        assert {e.id for e in entries} == {first.id, second.id}

    def test_get_entries_for_user_paginates(self, db, user_id):
        for _ in range(5):
            LedgerEntryFactory(user_id=user_id)

        assert len(ledger.get_entries_for_user(user_id, limit=3)) == 3
        assert len(ledger.get_entries_for_user(user_id, limit=3, offset=3)) == 2


class TestWithdrawalSettlement:
    """Posting or canceling a withdrawal's pending pair."""

    def test_posting_moves_money_out_of_posted_balance(self, pending_withdrawal_entries, funded_user):
        assert ledger.get_balance(funded_user).available == 9850

        ledger.transition_status([e.id for e in pending_withdrawal_entries], EntryStatus.POSTED)

        balance = ledger.get_balance(funded_user)
        assert balance.posted_balance == 9850
        assert balance.available == 9850

    def test_canceling_restores_available(self, pending_withdrawal_entries, funded_user):
        ledger.transition_status([e.id for e in pending_withdrawal_entries], EntryStatus.CANCELED)

        balance = ledger.get_balance(funded_user)
        assert balance.posted_balance == 20000
        assert balance.available == 20000
