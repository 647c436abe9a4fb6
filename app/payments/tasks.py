"""
Celery tasks for payment processing.

This module provides async tasks for:
- Submitting withdrawals to the transfer provider
- Periodic reconciliation of withdrawals whose outcome never arrived

Usage:
    from payments.tasks import submit_withdrawal

    # Queued automatically when a withdrawal is requested
    submit_withdrawal.delay(str(withdrawal.id))

    # Run by celery-beat (see migration 0002_withdrawal_reconciliation_schedule)
    from payments.tasks import reconcile_stale_withdrawals
    reconcile_stale_withdrawals.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.adapters import backoff_delay
from payments.exceptions import WithdrawalNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_SUBMIT_RETRIES = 8
SUBMIT_RETRY_BASE_SECONDS = 30
SUBMIT_RETRY_MAX_SECONDS = 1800

OUTCOME_UNKNOWN = "PROVIDER_OUTCOME_UNKNOWN"


# =============================================================================
# Withdrawal Tasks
# =============================================================================


@shared_task(bind=True, max_retries=MAX_SUBMIT_RETRIES, acks_late=True)
def submit_withdrawal(self, withdrawal_id: str) -> dict:
    """
    Submit a withdrawal to the provider.

    When the provider outcome is unknown (timeout) the task retries with the
    same withdrawal, so the same idempotency key reaches the provider and
    it deduplicates. Other failures are final for this task: the withdrawal
    was either FAILED or left REQUESTED for an operator (missing Pix key).

    Args:
        withdrawal_id: UUID of the Withdrawal, as a string

    Returns:
        Dict with the submission result
    """
    from payments.services import WithdrawalOrchestrator

    logger.info(
        "Submitting withdrawal",
        extra={"withdrawal_id": withdrawal_id, "retry": self.request.retries},
    )

    try:
        result = WithdrawalOrchestrator.submit(withdrawal_id)
    except WithdrawalNotFoundError:
        logger.error("Withdrawal not found", extra={"withdrawal_id": withdrawal_id})
        return {"status": "not_found", "withdrawal_id": withdrawal_id}

    if result.success:
        return {
            "status": result.data.status,
            "withdrawal_id": withdrawal_id,
            "transfer_id": result.data.provider_transfer_id,
        }

    if result.error_code == OUTCOME_UNKNOWN:
        if self.request.retries >= self.max_retries:
            logger.error(
                "Withdrawal outcome still unknown after retries, leaving it to reconciliation",
                extra={"withdrawal_id": withdrawal_id, "retries": self.request.retries},
            )
            return {"status": "outcome_unknown", "withdrawal_id": withdrawal_id}

        countdown = backoff_delay(
            self.request.retries,
            base=SUBMIT_RETRY_BASE_SECONDS,
            max_delay=SUBMIT_RETRY_MAX_SECONDS,
        )
        logger.warning(
            "Withdrawal outcome unknown, retrying submission",
            extra={"withdrawal_id": withdrawal_id, "countdown": round(countdown, 1)},
        )
        raise self.retry(countdown=countdown)

    logger.warning(
        "Withdrawal submission did not succeed",
        extra={"withdrawal_id": withdrawal_id, "error_code": result.error_code},
    )
    return {
        "status": "failed",
        "withdrawal_id": withdrawal_id,
        "error_code": result.error_code,
        "error": result.error,
    }


@shared_task
def reconcile_stale_withdrawals() -> dict:
    """
    Poll the provider for withdrawals stuck without an outcome.

    Runs periodically via celery-beat.

    Returns:
        Dict with polled / updated / resubmitted / errors counters
    """
    from payments.services import WithdrawalOrchestrator

    summary = WithdrawalOrchestrator.reconcile_stale()
    return summary.to_dict()
