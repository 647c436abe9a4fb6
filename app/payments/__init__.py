"""
Payments app for Pix collection and payouts.

This app handles:
- Inbound Transfeera webhooks (signature check, attempt audit trail)
- Matching incoming Pix payments to charges and crediting merchants
- The per-account ledger and posted/available balances
- Withdrawals to the user's Pix key and their asynchronous outcome

Usage:
    from payments.services import ChargeMatcher, WithdrawalOrchestrator

    result = WithdrawalOrchestrator.request_withdrawal(user_id, 10000, "req-42")

    from payments.ledger import ledger
    balance = ledger.get_balance(user_id)
"""
