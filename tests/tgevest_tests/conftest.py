"""
Shared fixtures for vesting vault tests.
"""

import pytest

from tgevest.core.contracts.erc20 import ERC20Token
from tgevest.core.defi.vesting import VestingVault
from tests.tgevest_tests.vesting_test_utils import ADMIN, ALICE, DAY, T0, VAULT_FUNDING, ManualClock


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def token():
    token = ERC20Token(name="Vest Token", symbol="VST", owner=ADMIN)
    token.mint(ADMIN, ADMIN, 10**24)
    return token


@pytest.fixture
def unfunded_vault(token, clock):
    return VestingVault(
        token=token,
        admin_address=ADMIN,
        unlock_period=30 * DAY,
        time_provider=clock,
    )


@pytest.fixture
def vault(unfunded_vault, token):
    token.transfer(ADMIN, unfunded_vault.address, VAULT_FUNDING)
    return unfunded_vault


@pytest.fixture
def cap(vault):
    return vault.grant_admin(ADMIN)


@pytest.fixture
def program(vault, cap):
    """Reference program: 10% TGE, 30 day cliff, 300 days linear, starts at T0."""
    vault.create_program(
        cap,
        "seed",
        pool=10_000,
        cliff_duration=30 * DAY,
        vesting_duration=300 * DAY,
        tge_percent=10,
        start_time=T0,
    )
    vault.add_beneficiary(cap, "seed", ALICE, 1000)
    return "seed"
