"""
Tests for the provider webhook endpoint.

Tests cover:
- Routing and method checks
- Signature authentication against the account's webhook config
- Recording an attempt for every delivery, including rejected ones
- CashIn and Transfer events applied through the endpoint
- Response codes for malformed, unmatched and failing events
"""

import json
import time

import pytest

from payments.conftest import WEBHOOK_URL
from payments.ledger import LedgerEntry, ReferenceType, ledger
from payments.models import Charge, WebhookAttempt, Withdrawal
from payments.state_machines import ChargeStatus, WebhookAttemptStatus, WithdrawalState
from payments.tests.factories import ChargeFactory, cash_in_event, transfer_event


def only_attempt() -> WebhookAttempt:
    assert WebhookAttempt.objects.count() == 1
    return WebhookAttempt.objects.get()


# =============================================================================
# Routing
# =============================================================================


class TestRouting:
    def test_unsupported_provider(self, post_webhook):
        response = post_webhook(cash_in_event(), url="/webhooks/acme/")

        assert response.status_code == 404
        attempt = only_attempt()
        assert response.json()["attempt_id"] == str(attempt.id)
        assert attempt.provider == "acme"
        assert attempt.status == WebhookAttemptStatus.REJECTED
        assert attempt.signature_valid is False
        assert attempt.event_id == "evt-cashin-1"
        assert attempt.error_message == "Provider 'acme' is not supported"

    def test_unsupported_provider_with_unparseable_body(self, post_webhook):
        response = post_webhook(b"{not json", signature="", url="/webhooks/acme/")

        assert response.status_code == 404
        attempt = only_attempt()
        assert attempt.event_id == "unknown"
        assert attempt.payload == {"raw_body": "{not json"}

    def test_get_not_allowed(self, client, db):
        assert client.get(WEBHOOK_URL).status_code == 405

    def test_provider_is_case_insensitive(self, post_webhook):
        ChargeFactory(pix_txid="E123")

        response = post_webhook(cash_in_event(), url="/webhooks/Transfeera/")

        assert response.status_code == 200


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    def test_invalid_json(self, post_webhook):
        response = post_webhook(b"{not json", signature="")

        assert response.status_code == 400
        attempt = only_attempt()
        assert attempt.status == WebhookAttemptStatus.REJECTED
        assert attempt.event_id == "unknown"
        assert attempt.payload == {"raw_body": "{not json"}

    def test_unknown_account(self, post_webhook):
        response = post_webhook(cash_in_event(account_id="acc-unknown"))

        assert response.status_code == 401
        assert response.json()["error"] == "WEBHOOK_CONFIG_NOT_FOUND"
        attempt = only_attempt()
        assert attempt.status == WebhookAttemptStatus.REJECTED
        assert attempt.signature_valid is False

    def test_inactive_config(self, post_webhook, webhook_config):
        webhook_config.active = False
        webhook_config.save()

        assert post_webhook(cash_in_event()).status_code == 401

    def test_wrong_secret(self, post_webhook):
        charge = ChargeFactory(pix_txid="E123")

        response = post_webhook(cash_in_event(), secret="whsec_wrong")

        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_SIGNATURE"
        assert only_attempt().signature_valid is False
        assert Charge.objects.get(id=charge.id).status == ChargeStatus.PENDING

    def test_missing_header(self, post_webhook):
        response = post_webhook(cash_in_event(), signature="")

        assert response.status_code == 401
        attempt = only_attempt()
        assert attempt.status == WebhookAttemptStatus.REJECTED
        assert attempt.event_id == "evt-cashin-1"

    def test_expired_signature(self, post_webhook):
        ChargeFactory(pix_txid="E123")
        an_hour_ago = int((time.time() - 3600) * 1000)

        response = post_webhook(cash_in_event(), timestamp_ms=an_hour_ago)

        assert response.status_code == 401
        assert response.json()["error"] == "SIGNATURE_EXPIRED"
        attempt = only_attempt()
        assert attempt.signature_valid is True
        assert attempt.status == WebhookAttemptStatus.REJECTED
        assert not LedgerEntry.objects.exists()

    def test_tolerance_disabled(self, post_webhook, settings):
        settings.WEBHOOK_SIGNATURE_TOLERANCE_SECONDS = 0
        ChargeFactory(pix_txid="E123")

        response = post_webhook(cash_in_event(), timestamp_ms=1)

        assert response.status_code == 200


# =============================================================================
# CashIn
# =============================================================================


class TestCashIn:
    def test_credits_charge(self, post_webhook):
        charge = ChargeFactory(amount_cents=10000, pix_txid="E123")

        response = post_webhook(cash_in_event(txid="E123", value=100.00))

        assert response.status_code == 200
        body = response.json()
        assert body["received"] is True

        attempt = only_attempt()
        assert body["attempt_id"] == str(attempt.id)
        assert attempt.status == WebhookAttemptStatus.PROCESSED
        assert attempt.signature_valid is True
        assert attempt.event_type == "CashIn"

        assert Charge.objects.get(id=charge.id).status == ChargeStatus.PAID
        assert ledger.get_balance(charge.merchant_id).available == 10000

    def test_redelivery_records_second_attempt_without_second_credit(self, post_webhook):
        charge = ChargeFactory(amount_cents=10000, pix_txid="E123")

        first = post_webhook(cash_in_event())
        second = post_webhook(cash_in_event())

        assert first.status_code == second.status_code == 200
        attempts = WebhookAttempt.objects.filter(event_id="evt-cashin-1").order_by("attempt")
        assert [a.attempt for a in attempts] == [1, 2]
        assert all(a.status == WebhookAttemptStatus.PROCESSED for a in attempts)
        assert LedgerEntry.objects.filter(reference_type=ReferenceType.CHARGE, reference_id=charge.id).count() == 1

    def test_unmatched_charge_acknowledged(self, post_webhook):
        response = post_webhook(cash_in_event(txid="E404"))

        assert response.status_code == 200
        assert response.json()["error"] == "CHARGE_NOT_FOUND"
        attempt = only_attempt()
        assert attempt.status == WebhookAttemptStatus.FAILED
        assert "CHARGE_NOT_FOUND" in attempt.error_message

    def test_unmatched_charge_retry_policy(self, post_webhook, settings):
        settings.WEBHOOK_UNMATCHED_CHARGE_POLICY = "retry"

        response = post_webhook(cash_in_event(txid="E404"))

        assert response.status_code == 409
        assert only_attempt().status == WebhookAttemptStatus.FAILED

    def test_unpayable_charge_acknowledged(self, post_webhook):
        ChargeFactory(pix_txid="E123", status=ChargeStatus.EXPIRED)

        response = post_webhook(cash_in_event())

        assert response.status_code == 200
        assert response.json()["error"] == "CHARGE_NOT_PAYABLE"
        assert not LedgerEntry.objects.exists()

    def test_missing_correlation_keys(self, post_webhook):
        event = cash_in_event()
        event["data"] = {"value": 100.0}

        response = post_webhook(event)

        assert response.status_code == 400
        assert only_attempt().status == WebhookAttemptStatus.REJECTED


# =============================================================================
# Transfer
# =============================================================================


class TestTransfer:
    def test_completes_withdrawal(self, post_webhook, processing_withdrawal):
        response = post_webhook(transfer_event("transfer-1", "FINALIZADO"))

        assert response.status_code == 200
        withdrawal = Withdrawal.objects.get(id=processing_withdrawal.id)
        assert withdrawal.status == WithdrawalState.COMPLETED
        assert only_attempt().event_type == "Transfer"

    def test_unknown_transfer_acknowledged(self, post_webhook):
        response = post_webhook(transfer_event("transfer-404", "FINALIZADO"))

        assert response.status_code == 200
        assert only_attempt().status == WebhookAttemptStatus.PROCESSED

    def test_missing_status(self, post_webhook):
        event = transfer_event()
        del event["data"]["status"]

        response = post_webhook(event)

        assert response.status_code == 400


# =============================================================================
# Other outcomes
# =============================================================================


class TestOtherOutcomes:
    def test_unhandled_object_acknowledged(self, post_webhook):
        event = {"id": "evt-pixkey-1", "object": "PixKey", "account_id": "acc-1", "data": {}}

        response = post_webhook(event)

        assert response.status_code == 200
        assert only_attempt().status == WebhookAttemptStatus.PROCESSED

    def test_unexpected_error_returns_500(self, post_webhook, mocker):
        mocker.patch("payments.webhooks.views.dispatch_webhook", side_effect=RuntimeError("boom"))

        response = post_webhook(cash_in_event())

        assert response.status_code == 500
        attempt = only_attempt()
        assert attempt.status == WebhookAttemptStatus.FAILED
        assert attempt.error_message == "RuntimeError: boom"

    def test_signature_covers_exact_bytes(self, post_webhook, webhook_config):
        ChargeFactory(pix_txid="E123")
        body = json.dumps(cash_in_event(), indent=2).encode()

        assert post_webhook(body).status_code == 200


@pytest.mark.parametrize("status", ["DEVOLVIDO", "FALHA"])
def test_failed_transfer_restores_balance(post_webhook, processing_withdrawal, status):
    response = post_webhook(transfer_event("transfer-1", status))

    assert response.status_code == 200
    assert Withdrawal.objects.get(id=processing_withdrawal.id).status == WithdrawalState.FAILED
    assert ledger.get_balance(processing_withdrawal.user_id).available == 20000
