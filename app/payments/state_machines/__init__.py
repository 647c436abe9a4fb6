"""
State machine enums for reconciliation and payout models.

Withdrawal transitions are declared with django-fsm on the model itself;
this package only holds the vocabularies.
"""

from payments.state_machines.states import (
    ChargeMethod,
    ChargeStatus,
    PixKeyType,
    ProviderTransferStatus,
    WebhookAttemptStatus,
    WithdrawalState,
)

__all__ = [
    "ChargeMethod",
    "ChargeStatus",
    "PixKeyType",
    "ProviderTransferStatus",
    "WebhookAttemptStatus",
    "WithdrawalState",
]
