"""
Pytest fixtures shared by every payments test package.

Sections:
    - Account Fixtures: Owners with posted balances
    - Pix Key Fixtures: Payout destinations
    - Provider Fixtures: Mocked Transfeera gateway and task queue
    - Webhook Fixtures: Signing config and signed deliveries

Usage:
    def test_submit(requested_withdrawal, mock_gateway):
        result = WithdrawalOrchestrator.submit(requested_withdrawal.id)
        assert result.data.status == WithdrawalState.PROCESSING
"""

import json
import uuid

import pytest

from payments.adapters import BatchResult, TransfeeraAdapter, TransferResult
from payments.ledger import EntryStatus, EntryType, ReferenceType
from payments.ledger.tests.factories import LedgerEntryFactory
from payments.services import WithdrawalOrchestrator
from payments.tests.factories import PixKeyFactory, ProviderWebhookConfigFactory
from payments.webhooks.signature import SIGNATURE_HEADER, build_header

WEBHOOK_URL = "/webhooks/transfeera/"


# =============================================================================
# Account Fixtures
# =============================================================================


@pytest.fixture
def user_id():
    """An account owner with no ledger history."""
    return uuid.uuid4()


@pytest.fixture
def fund_account(db):
    """
    Post a credit to an account.

    Usage:
        fund_account(user_id, 20000)
    """

    def _fund(owner_id, amount_cents: int):
        return LedgerEntryFactory(
            user_id=owner_id,
            entry_type=EntryType.CHARGE_NET,
            status=EntryStatus.POSTED,
            amount_cents=amount_cents,
            is_credit=True,
            reference_type=ReferenceType.MANUAL,
        )

    return _fund


@pytest.fixture
def funded_user(user_id, fund_account):
    """User with R$ 200,00 posted and available."""
    fund_account(user_id, 20000)
    return user_id


# =============================================================================
# Pix Key Fixtures
# =============================================================================


@pytest.fixture
def verified_pix_key(db, funded_user):
    """Verified Pix key for funded_user."""
    return PixKeyFactory(user_id=funded_user, is_verified=True)


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def mock_gateway(mocker):
    """
    Mocked Transfeera adapter installed on the orchestrator.

    create_batch returns batch "batch-1"; create_transfer returns transfer
    "transfer-1" in status CRIADA. Override return values or side effects
    per test.
    """
    gateway = mocker.MagicMock(spec=TransfeeraAdapter)
    gateway.create_batch.return_value = BatchResult(id="batch-1", status="RECEBIDO")
    gateway.create_transfer.return_value = TransferResult(id="transfer-1", status="CRIADA", batch_id="batch-1")
    WithdrawalOrchestrator.set_gateway(gateway)
    return gateway


@pytest.fixture
def mock_enqueue(mocker):
    """Capture submit_withdrawal.delay calls instead of reaching a broker."""
    return mocker.patch("payments.tasks.submit_withdrawal.delay")


@pytest.fixture
def requested_withdrawal(funded_user, verified_pix_key):
    """A REQUESTED R$ 100,00 withdrawal with its two pending debits."""
    result = WithdrawalOrchestrator.request_withdrawal(funded_user, 10000, "withdrawal-req-1")
    assert result.success, result.error
    return result.data


@pytest.fixture
def processing_withdrawal(requested_withdrawal, mock_gateway):
    """The requested withdrawal after submission to the provider (transfer-1)."""
    result = WithdrawalOrchestrator.submit(requested_withdrawal.id)
    assert result.success, result.error
    return result.data


# =============================================================================
# Webhook Fixtures
# =============================================================================


@pytest.fixture
def webhook_config(db):
    """Active Transfeera webhook config for account "acc-1"."""
    return ProviderWebhookConfigFactory(account_id="acc-1", signature_secret="whsec_test_secret")


@pytest.fixture
def post_webhook(client, webhook_config):
    """
    POST a signed delivery to the Transfeera webhook endpoint.

    Usage:
        response = post_webhook({"id": "evt-1", "object": "CashIn", ...})
        response = post_webhook(event, secret="wrong")
        response = post_webhook(event, signature="t=1,v1=00")
    """

    def _post(event, secret=None, signature=None, timestamp_ms=None, url=WEBHOOK_URL):
        body = event if isinstance(event, bytes) else json.dumps(event).encode()
        if signature is None:
            signature = build_header(body, secret or webhook_config.signature_secret, timestamp_ms)
        headers = {SIGNATURE_HEADER: signature} if signature else {}
        return client.post(url, data=body, content_type="application/json", headers=headers)

    return _post
