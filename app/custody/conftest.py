"""
Pytest fixtures shared by the custody test packages.

Escrow fixtures are created through EscrowService so the ledger always
holds the captured money they refer to.

Usage:
    def test_release(held_escrow, buyer):
        EscrowService.confirm_delivery(held_escrow.id, actor_id=buyer.id, confirmation=...)
"""

from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from custody.services import EscrowService, WithdrawalService
from custody.state_machines import AdminAction
from custody.tests.factories import create_held_escrow, fund_wallet


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def buyer(db):
    return UserFactory(full_name="Buyer")


@pytest.fixture
def seller(db):
    return UserFactory(full_name="Seller")


@pytest.fixture
def driver(db):
    return UserFactory(full_name="Driver")


@pytest.fixture
def admin_user(db):
    return UserFactory(is_staff=True, full_name="Operator")


@pytest.fixture
def outsider(db):
    """A user who is party to nothing."""
    return UserFactory()


# =============================================================================
# Escrow Fixtures
# =============================================================================


@pytest.fixture
def held_escrow(buyer, seller):
    """100000 CDF held escrow without driver (95000 / 0 / 5000)."""
    return create_held_escrow(buyer=buyer, seller=seller, total_amount=100000)


@pytest.fixture
def delivery_escrow(buyer, seller, driver):
    """100000 CDF held escrow with driver (80000 / 15000 / 5000)."""
    return create_held_escrow(buyer=buyer, seller=seller, driver=driver, total_amount=100000)


@pytest.fixture
def disputed_escrow(held_escrow, admin_user):
    return EscrowService.admin_action(
        held_escrow.id,
        AdminAction.OPEN_DISPUTE,
        actor_id=admin_user.id,
        reason="Item never arrived",
    )


# =============================================================================
# Withdrawal Fixtures
# =============================================================================


@pytest.fixture
def funded_driver(driver):
    """Driver with 100000 CDF in the wallet."""
    fund_wallet(driver, 100000)
    return driver


@pytest.fixture
def pending_withdrawal(funded_driver):
    """40000 CDF pending mobile-money withdrawal of funded_driver."""
    return WithdrawalService.request_withdrawal(
        user_id=funded_driver.id,
        user_type="driver",
        amount=40000,
        method="mobile_money",
        payout_details={"provider": "mpesa", "phone": "+243810000001"},
    )


# =============================================================================
# API Clients
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def buyer_client(buyer):
    client = APIClient()
    client.force_authenticate(user=buyer)
    return client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


# =============================================================================
# Redis
# =============================================================================


@pytest.fixture
def mock_redis():
    """Mock Redis connection used by DistributedLock."""
    with patch("custody.locks.get_redis_connection") as mock_get_conn:
        redis_instance = MagicMock()
        redis_instance.set.return_value = True
        redis_instance.eval.return_value = 1
        mock_get_conn.return_value = redis_instance
        yield redis_instance
