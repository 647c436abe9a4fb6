"""
Tests for Withdrawal state machine transitions using django-fsm.

Terminal states (COMPLETED, FAILED) accept no further transitions.
"""

import pytest
from django_fsm import TransitionNotAllowed

from payments.state_machines import WithdrawalState
from payments.tests.factories import WithdrawalFactory


@pytest.fixture
def requested():
    return WithdrawalFactory.build(status=WithdrawalState.REQUESTED)


@pytest.fixture
def processing():
    return WithdrawalFactory.build(status=WithdrawalState.PROCESSING, provider_transfer_id="transfer-1")


class TestValidTransitions:
    def test_requested_to_processing(self, requested):
        """Should record provider identifiers when processing starts."""
        requested.start_processing(transfer_id="transfer-1", batch_id="batch-1")

        assert requested.status == WithdrawalState.PROCESSING
        assert requested.provider_transfer_id == "transfer-1"
        assert requested.provider_batch_id == "batch-1"

    def test_start_processing_keeps_existing_transfer_id(self):
        withdrawal = WithdrawalFactory.build(provider_transfer_id="transfer-9")

        withdrawal.start_processing()

        assert withdrawal.provider_transfer_id == "transfer-9"

    def test_processing_to_completed(self, processing):
        """Should stamp processed_at on completion."""
        processing.complete()

        assert processing.status == WithdrawalState.COMPLETED
        assert processing.processed_at is not None
        assert processing.is_terminal

    def test_processing_to_failed(self, processing):
        processing.fail("Transferência devolvida pelo banco")

        assert processing.status == WithdrawalState.FAILED
        assert processing.failure_reason == "Transferência devolvida pelo banco"
        assert processing.processed_at is not None

    def test_requested_to_failed(self, requested):
        """Should allow failing a withdrawal the provider never accepted."""
        requested.fail("Chave Pix inválida")

        assert requested.status == WithdrawalState.FAILED


class TestInvalidTransitions:
    def test_requested_cannot_complete(self, requested):
        with pytest.raises(TransitionNotAllowed):
            requested.complete()

    def test_processing_cannot_restart(self, processing):
        with pytest.raises(TransitionNotAllowed):
            processing.start_processing()

    @pytest.mark.parametrize("terminal", [WithdrawalState.COMPLETED, WithdrawalState.FAILED])
    @pytest.mark.parametrize("method,args", [("start_processing", ()), ("complete", ()), ("fail", ("again",))])
    def test_terminal_states_are_final(self, terminal, method, args):
        withdrawal = WithdrawalFactory.build(status=terminal)

        with pytest.raises(TransitionNotAllowed):
            getattr(withdrawal, method)(*args)

        assert withdrawal.status == terminal
