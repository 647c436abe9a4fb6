"""
Pytest fixtures for ledger tests.

Account owners and funding helpers come from payments/conftest.py; this
module only adds ledger-specific data.
"""

import uuid

import pytest

from payments.ledger.models import EntryStatus, EntryType, ReferenceType
from payments.ledger.tests.factories import LedgerEntryFactory


@pytest.fixture
def withdrawal_reference():
    """Reference id shared by a withdrawal's debit and fee."""
    return uuid.uuid4()


@pytest.fixture
def pending_withdrawal_entries(db, funded_user, withdrawal_reference):
    """
    Pending debit (10000) and fee (150) for funded_user.

    Leaves funded_user with posted 20000 and available 9850.
    """
    return [
        LedgerEntryFactory(
            user_id=funded_user,
            entry_type=EntryType.WITHDRAWAL_DEBIT,
            status=EntryStatus.PENDING,
            amount_cents=10000,
            is_credit=False,
            reference_type=ReferenceType.WITHDRAWAL,
            reference_id=withdrawal_reference,
        ),
        LedgerEntryFactory(
            user_id=funded_user,
            entry_type=EntryType.WITHDRAWAL_FEE,
            status=EntryStatus.PENDING,
            amount_cents=150,
            is_credit=False,
            reference_type=ReferenceType.WITHDRAWAL,
            reference_id=withdrawal_reference,
        ),
    ]
