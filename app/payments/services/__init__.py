"""
Payment services.

This module provides:
- ChargeMatcher: Resolves incoming-payment events to charges and credits merchants
- WithdrawalOrchestrator: Reserves funds, submits payouts and applies provider outcomes

Usage:
    from payments.services import ChargeMatcher, WithdrawalOrchestrator

    outcome = ChargeMatcher.reconcile(event["data"])

    result = WithdrawalOrchestrator.request_withdrawal(user_id, 10000, "req-42")
    WithdrawalOrchestrator.handle_provider_status("transfer-123", "FINALIZADO")
"""

from payments.services.charge_matcher import (
    ChargeMatch,
    ChargeMatcher,
    ReconciliationOutcome,
)
from payments.services.withdrawal_orchestrator import (
    StaleReconciliationSummary,
    StatusAction,
    StatusOutcome,
    WithdrawalOrchestrator,
)

__all__ = [
    "ChargeMatch",
    "ChargeMatcher",
    "ReconciliationOutcome",
    "StaleReconciliationSummary",
    "StatusAction",
    "StatusOutcome",
    "WithdrawalOrchestrator",
]
