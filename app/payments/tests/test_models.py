"""
Tests for payment models.

Tests cover:
- Database constraints on Charge, Withdrawal, PixKey and WebhookAttempt
- Withdrawal optimistic-locking version
- Model properties and string representations
- ProviderWebhookConfig secret lookup
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from payments.models import Charge, ProviderWebhookConfig, WebhookAttempt, Withdrawal
from payments.state_machines import ChargeStatus, PixKeyType, WebhookAttemptStatus, WithdrawalState
from payments.tests.factories import (
    ChargeFactory,
    PixKeyFactory,
    ProviderWebhookConfigFactory,
    WebhookAttemptFactory,
    WithdrawalFactory,
)


# =============================================================================
# Charge
# =============================================================================


class TestCharge:
    def test_defaults(self, db):
        charge = ChargeFactory()

        assert charge.status == ChargeStatus.PENDING
        assert charge.currency == "BRL"
        assert charge.paid_at is None
        assert not charge.is_paid

    def test_str(self, db):
        charge = Charge.objects.get(id=ChargeFactory(amount_cents=12345).id)

        assert str(charge) == f"Charge({charge.id}, pending, 123.45 BRL)"

    def test_amount_must_be_positive(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            ChargeFactory(amount_cents=0)

    def test_paid_requires_paid_at(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            ChargeFactory(status=ChargeStatus.PAID, paid_at=None)

    def test_paid_at_requires_paid(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            ChargeFactory(status=ChargeStatus.PENDING, paid_at=timezone.now())

    def test_paid_charge(self, db):
        charge = ChargeFactory(status=ChargeStatus.PAID, paid_at=timezone.now())

        assert charge.is_paid

    def test_txid_is_unique(self, db):
        ChargeFactory(pix_txid="E123")

        with pytest.raises(IntegrityError), transaction.atomic():
            ChargeFactory(pix_txid="E123")

    def test_many_charges_without_txid(self, db):
        ChargeFactory(pix_txid=None)
        ChargeFactory(pix_txid=None)


# =============================================================================
# Withdrawal
# =============================================================================


class TestWithdrawal:
    def test_defaults(self, db):
        withdrawal = WithdrawalFactory()

        assert withdrawal.status == WithdrawalState.REQUESTED
        assert withdrawal.version == 1
        assert not withdrawal.is_terminal
        assert not withdrawal.was_submitted

    def test_version_increments_on_save(self, db):
        withdrawal = WithdrawalFactory()

        withdrawal.start_processing(transfer_id="transfer-1")
        withdrawal.save()
        withdrawal.complete()
        withdrawal.save()

        assert withdrawal.version == 3
        assert Withdrawal.objects.get(id=withdrawal.id).version == 3

    def test_was_submitted(self, db):
        assert WithdrawalFactory(provider_transfer_id="transfer-1").was_submitted
        assert WithdrawalFactory(status=WithdrawalState.FAILED).was_submitted

    def test_ledger_keys(self, db):
        withdrawal = WithdrawalFactory()

        assert withdrawal.ledger_keys == (
            f"withdrawal_debit:{withdrawal.id}",
            f"withdrawal_fee:{withdrawal.id}",
        )

    def test_str(self, db):
        withdrawal = Withdrawal.objects.get(id=WithdrawalFactory(amount_cents=10000).id)

        assert str(withdrawal) == f"Withdrawal({withdrawal.id}, requested, 100.00 BRL)"

    def test_idempotency_key_unique_per_user(self, db):
        first = WithdrawalFactory(idempotency_key="req-1")
        WithdrawalFactory(idempotency_key="req-1")

        with pytest.raises(IntegrityError), transaction.atomic():
            WithdrawalFactory(user_id=first.user_id, idempotency_key="req-1")

    def test_total_must_equal_amount_plus_fee(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            WithdrawalFactory(amount_cents=100, fee_cents=10, total_debited_cents=100)

    def test_transfer_id_is_unique(self, db):
        WithdrawalFactory(provider_transfer_id="transfer-1")

        with pytest.raises(IntegrityError), transaction.atomic():
            WithdrawalFactory(provider_transfer_id="transfer-1")


# =============================================================================
# PixKey
# =============================================================================


class TestPixKey:
    def test_unique_per_user_type_and_key(self, db):
        key = PixKeyFactory(key_type=PixKeyType.CPF, key="12345678909")
        PixKeyFactory(key_type=PixKeyType.CPF, key="12345678909")

        with pytest.raises(IntegrityError), transaction.atomic():
            PixKeyFactory(user_id=key.user_id, key_type=PixKeyType.CPF, key="12345678909")

    def test_str_hides_key(self, db):
        key = PixKeyFactory(key="recebedor@example.com")

        assert "recebedor" not in str(key)


# =============================================================================
# ProviderWebhookConfig
# =============================================================================


class TestProviderWebhookConfig:
    def test_for_account(self, db):
        config = ProviderWebhookConfigFactory(account_id="acc-1")
        ProviderWebhookConfigFactory(account_id="acc-2")

        assert ProviderWebhookConfig.objects.for_account("transfeera", "acc-1") == config

    def test_newest_active_config_wins(self, db):
        old = ProviderWebhookConfigFactory(account_id="acc-1", signature_secret="old")
        new = ProviderWebhookConfigFactory(account_id="acc-1", signature_secret="new")
        ProviderWebhookConfig.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=1))

        assert ProviderWebhookConfig.objects.for_account("transfeera", "acc-1") == new

    def test_inactive_configs_are_skipped(self, db):
        ProviderWebhookConfigFactory(account_id="acc-1", active=False)

        assert ProviderWebhookConfig.objects.for_account("transfeera", "acc-1") is None

    @pytest.mark.parametrize("account_id", [None, ""])
    def test_missing_account(self, db, account_id):
        ProviderWebhookConfigFactory(account_id="")

        assert ProviderWebhookConfig.objects.for_account("transfeera", account_id) is None

    def test_other_provider(self, db):
        ProviderWebhookConfigFactory(account_id="acc-1", provider="other")

        assert ProviderWebhookConfig.objects.for_account("transfeera", "acc-1") is None

    def test_str_hides_secret(self, db):
        config = ProviderWebhookConfigFactory(signature_secret="whsec_very_secret")

        assert "whsec_very_secret" not in str(config)


# =============================================================================
# WebhookAttempt
# =============================================================================


class TestWebhookAttempt:
    def test_str_and_is_final(self, db):
        attempt = WebhookAttempt.objects.get(id=WebhookAttemptFactory(event_id="evt-1", attempt=2).id)

        assert str(attempt) == "transfeera:CashIn:evt-1 #2 (received)"
        assert not attempt.is_final

        attempt.status = WebhookAttemptStatus.PROCESSED
        assert attempt.is_final

    def test_ordinal_must_be_positive(self, db):
        with pytest.raises(IntegrityError), transaction.atomic():
            WebhookAttemptFactory(attempt=0)
