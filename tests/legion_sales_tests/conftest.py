"""
Shared fixtures for sale tests: accounts, tokens, registry and clock.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from legion_sales.core.clock import ManualClock
from legion_sales.core.constants import (
    REGISTRY_FEE_RECEIVER,
    REGISTRY_PLATFORM_ADMIN,
    REGISTRY_SIGNER_PUBLIC_KEY,
    SECONDS_PER_WEEK,
    UINT256_MAX,
)
from legion_sales.core.contracts.erc20 import ERC20Token
from legion_sales.core.registry import InMemoryAddressRegistry
from legion_sales.core.sales.sale_types import SaleInitializationParams

from sale_helpers import (
    INVESTOR_FUNDS,
    PROJECT_TOKENS,
    START_TIME,
    PlatformSigner,
    make_account,
)


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def platform_admin():
    return "0x" + "a1" * 20


@pytest.fixture
def project_admin():
    return "0x" + "b2" * 20


@pytest.fixture
def fee_receiver():
    return "0x" + "c3" * 20


@pytest.fixture
def referrer():
    return "0x" + "d4" * 20


@pytest.fixture
def signer_account():
    return make_account("legion-signer")


@pytest.fixture
def platform_signer(signer_account):
    return PlatformSigner(signer_account)


@pytest.fixture
def investors():
    return [make_account(f"investor-{i}") for i in range(3)]


@pytest.fixture
def registry(platform_admin, fee_receiver, signer_account):
    return InMemoryAddressRegistry(
        owner=platform_admin,
        addresses={
            REGISTRY_PLATFORM_ADMIN: platform_admin,
            REGISTRY_SIGNER_PUBLIC_KEY: signer_account.public_key,
            REGISTRY_FEE_RECEIVER: fee_receiver,
        },
    )


@pytest.fixture
def bid_token(platform_admin, investors):
    token = ERC20Token(name="USD Coin", symbol="USDC", decimals=6, owner=platform_admin)
    for investor in investors:
        token.mint(platform_admin, investor.address, INVESTOR_FUNDS)
    return token


@pytest.fixture
def ask_token(project_admin):
    token = ERC20Token(name="Legion Project", symbol="LGN", decimals=18, owner=project_admin)
    token.mint(project_admin, project_admin, PROJECT_TOKENS)
    return token


@pytest.fixture
def make_params(project_admin, referrer):
    def _make(**overrides):
        values = dict(
            sale_period=4 * SECONDS_PER_WEEK,
            refund_period=2 * SECONDS_PER_WEEK,
            minimum_invest_amount=1_000,
            project_admin=project_admin,
            legion_fee_on_capital_bps=250,
            legion_fee_on_tokens_bps=250,
            referrer_fee_on_capital_bps=100,
            referrer_fee_on_tokens_bps=100,
            referrer_fee_receiver=referrer,
            sale_name="Legion Test Sale",
        )
        values.update(overrides)
        return SaleInitializationParams(**values)
    return _make


@pytest.fixture
def approve_sale(investors, project_admin, bid_token, ask_token):
    """Grant a sale unlimited allowances from investors and the project."""
    def _approve(sale):
        for investor in investors:
            bid_token.approve(investor.address, sale.address, UINT256_MAX)
        bid_token.approve(project_admin, sale.address, UINT256_MAX)
        ask_token.approve(project_admin, sale.address, UINT256_MAX)
        return sale
    return _approve
