"""
Tests for ChargeMatcher.

Tests cover:
- Correlation strategy order (txid, then integration_id)
- Marking the charge PAID and crediting the merchant once
- Redelivery and amount mismatch handling
- Charges that can no longer be paid
- Amount conversion from reais to centavos
"""

from decimal import Decimal

import pytest

from payments.exceptions import (
    ChargeNotFoundError,
    ChargeNotPayableError,
    MalformedWebhookPayloadError,
)
from payments.ledger import EntryStatus, LedgerEntry, ReferenceType, ledger
from payments.models import Charge
from payments.services import ChargeMatcher
from payments.state_machines import ChargeStatus
from payments.tests.factories import ChargeFactory


# =============================================================================
# resolve()
# =============================================================================


class TestResolve:
    def test_matches_by_txid(self, db):
        charge = ChargeFactory(pix_txid="E123")

        match = ChargeMatcher.resolve({"txid": "E123"})

        assert match.charge.id == charge.id
        assert match.matched_by == "pix_txid"

    def test_falls_back_to_integration_id(self, db):
        charge = ChargeFactory(pix_txid=None, external_ref="order-42")

        match = ChargeMatcher.resolve({"txid": "E-unknown", "integration_id": "order-42"})

        assert match.charge.id == charge.id
        assert match.matched_by == "external_ref"

    def test_txid_wins_over_integration_id(self, db):
        by_txid = ChargeFactory(pix_txid="E123", external_ref="a")
        ChargeFactory(pix_txid="E999", external_ref="order-42")

        match = ChargeMatcher.resolve({"txid": "E123", "integration_id": "order-42"})

        assert match.charge.id == by_txid.id

    def test_no_keys_is_malformed(self, db):
        with pytest.raises(MalformedWebhookPayloadError):
            ChargeMatcher.resolve({"value": 100.0, "txid": "  "})

    def test_no_match_lists_attempted_keys(self, db):
        ChargeFactory(pix_txid="E123")

        with pytest.raises(ChargeNotFoundError) as exc_info:
            ChargeMatcher.resolve({"txid": "E404", "integration_id": "missing"})

        assert exc_info.value.attempted_keys == {"pix_txid": "E404", "external_ref": "missing"}
        assert exc_info.value.error_code == "CHARGE_NOT_FOUND"


# =============================================================================
# reconcile()
# =============================================================================


class TestReconcile:
    def test_marks_paid_and_credits_merchant(self, db):
        charge = ChargeFactory(amount_cents=10000, pix_txid="E123")

        outcome = ChargeMatcher.reconcile({"txid": "E123", "value": 100.00})

        charge.refresh_from_db()
        assert outcome.credited is True
        assert outcome.credited_cents == 10000
        assert charge.status == ChargeStatus.PAID
        assert charge.paid_at is not None

        entries = ledger.get_entries_by_reference(ReferenceType.CHARGE, charge.id)
        assert len(entries) == 1
        assert entries[0].amount_cents == 10000
        assert entries[0].is_credit is True
        assert entries[0].status == EntryStatus.POSTED
        assert entries[0].user_id == charge.merchant_id
        assert entries[0].idempotency_key == f"charge_net:{charge.id}"

        assert ledger.get_balance(charge.merchant_id).available == 10000

    def test_redelivery_does_not_credit_twice(self, db):
        charge = ChargeFactory(amount_cents=10000, pix_txid="E123")
        ChargeMatcher.reconcile({"txid": "E123", "value": 100.00})
        paid_at = Charge.objects.get(id=charge.id).paid_at

        outcome = ChargeMatcher.reconcile({"txid": "E123", "value": 100.00})

        assert outcome.credited is False
        assert outcome.already_paid is True
        assert LedgerEntry.objects.filter(reference_id=charge.id).count() == 1
        assert Charge.objects.get(id=charge.id).paid_at == paid_at

    def test_amount_mismatch_credits_paid_amount(self, db):
        charge = ChargeFactory(amount_cents=10000, pix_txid="E123")

        outcome = ChargeMatcher.reconcile({"txid": "E123", "value": "99.50"})

        assert outcome.amount_mismatch is True
        assert outcome.credited_cents == 9950
        assert ledger.get_balance(charge.merchant_id).posted_balance == 9950

    def test_missing_value_credits_charge_amount(self, db):
        charge = ChargeFactory(amount_cents=4321, pix_txid="E123")

        outcome = ChargeMatcher.reconcile({"txid": "E123"})

        assert outcome.credited_cents == 4321
        assert outcome.amount_mismatch is False
        assert ledger.get_balance(charge.merchant_id).posted_balance == 4321

    @pytest.mark.parametrize("status", [ChargeStatus.EXPIRED, ChargeStatus.CANCELED])
    def test_unpayable_charge_raises_without_credit(self, db, status):
        charge = ChargeFactory(pix_txid="E123", status=status)

        with pytest.raises(ChargeNotPayableError):
            ChargeMatcher.reconcile({"txid": "E123", "value": 100.00})

        assert not LedgerEntry.objects.filter(reference_id=charge.id).exists()
        assert Charge.objects.get(id=charge.id).status == status

    def test_unmatched_charge_raises(self, db):
        with pytest.raises(ChargeNotFoundError):
            ChargeMatcher.reconcile({"txid": "E404", "value": 1})

        assert LedgerEntry.objects.count() == 0


# =============================================================================
# to_cents()
# =============================================================================


class TestToCents:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (100, 10000),
            (100.0, 10000),
            ("100.00", 10000),
            ("0.01", 1),
            ("100.005", 10001),
            (Decimal("19.99"), 1999),
            (0.1 + 0.2, 30),
        ],
    )
    def test_converts(self, value, expected):
        assert ChargeMatcher.to_cents(value) == expected

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_value(self, value):
        assert ChargeMatcher.to_cents(value) is None

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", 0, "-5"])
    def test_invalid_value(self, value):
        with pytest.raises(MalformedWebhookPayloadError):
            ChargeMatcher.to_cents(value)
