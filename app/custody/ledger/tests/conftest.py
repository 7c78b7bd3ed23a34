"""
Pytest fixtures for ledger tests.

Sections:
    - Account Fixtures: Pre-configured ledger accounts
    - Test Data Fixtures: Idempotency keys
"""

import uuid

import pytest

from custody.ledger.models import AccountType, EntryType
from custody.ledger.services import LedgerService
from custody.ledger.tests.factories import LedgerAccountFactory
from custody.ledger.types import RecordEntryParams


# ==========================================================================
# Account Fixtures
# ==========================================================================


@pytest.fixture
def external_account(db):
    """
    External payments account that can go negative.

    Represents money coming in from the payment-capture side.
    """
    return LedgerAccountFactory(
        type=AccountType.EXTERNAL_PAYMENTS,
        owner_id=None,
        allow_negative=True,
    )


@pytest.fixture
def escrow_account(db):
    return LedgerAccountFactory(type=AccountType.PLATFORM_ESCROW, owner_id=None)


@pytest.fixture
def revenue_account(db):
    return LedgerAccountFactory(type=AccountType.PLATFORM_REVENUE, owner_id=None)


@pytest.fixture
def wallet_account(db):
    """Empty user wallet."""
    return LedgerAccountFactory(type=AccountType.USER_WALLET)


@pytest.fixture
def inactive_account(db):
    return LedgerAccountFactory(type=AccountType.USER_WALLET, is_active=False)


@pytest.fixture
def funded_escrow_account(external_account, escrow_account):
    """Escrow account holding 10000 recorded through the service."""
    LedgerService.record_entry(
        RecordEntryParams(
            debit_account_id=external_account.id,
            credit_account_id=escrow_account.id,
            amount=10000,
            entry_type=EntryType.PAYMENT_CAPTURED,
            idempotency_key=f"fund-escrow-{uuid.uuid4()}",
        )
    )
    return escrow_account


# ==========================================================================
# Test Data Fixtures
# ==========================================================================


@pytest.fixture
def unique_idempotency_key():
    return f"test-{uuid.uuid4()}"
