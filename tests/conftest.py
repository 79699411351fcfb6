"""
Pytest configuration and fixtures for Reflex tests.
"""

import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from chains.ledger import Chain, Erc20Token  # noqa: E402
from core.models import QuoteResult  # noqa: E402
from dex.pools import DeltaCallbackPool, PushCallbackPool  # noqa: E402
from execution.router import BackrunRouter  # noqa: E402
from quoting.static import StaticQuoter, quote_from_pools  # noqa: E402

WETH_DECIMALS = 10**18
USDC_DECIMALS = 10**6


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@dataclass
class World:
    """
    Two WETH/USDC pools priced 3000 and 3300 USDC per WETH.

    cheap: push-callback pair (V2 style), token0 = WETH
    rich:  delta-callback pool (V3 style), token0 = WETH
    """
    chain: Chain
    admin: str
    searcher: str
    trader: str
    weth: Erc20Token
    usdc: Erc20Token
    cheap: PushCallbackPool
    rich: DeltaCallbackPool
    quoter: StaticQuoter
    router: BackrunRouter

    def cycle_quote(self, amount_in: int = 3_000 * USDC_DECIMALS) -> QuoteResult:
        """USDC -> WETH on cheap, WETH -> USDC on rich."""
        return quote_from_pools(
            self.chain,
            self.usdc.address,
            amount_in,
            [(self.cheap.address, 0x00), (self.rich.address, 0x80)],
        )

    def set_quote(self, pool: str, quote: QuoteResult) -> None:
        self.chain.transact(self.admin, self.quoter, "set_quote", pool, quote)

    def balance(self, token: Erc20Token, account: str) -> int:
        return self.chain.token_balance(token, account)


def build_world(chain_id: int = 42161, with_quoter: bool = True) -> World:
    chain = Chain(chain_id)
    admin = chain.account("admin")

    weth = chain.deploy(Erc20Token, "Wrapped Ether", "WETH", 18, deployer=admin)
    usdc = chain.deploy(Erc20Token, "USD Coin", "USDC", 6, deployer=admin)

    cheap = chain.deploy(PushCallbackPool, weth.address, usdc.address, 30, deployer=admin)
    chain.fund(weth, cheap.address, 100 * WETH_DECIMALS)
    chain.fund(usdc, cheap.address, 300_000 * USDC_DECIMALS)
    chain.transact(admin, cheap, "sync")

    rich = chain.deploy(DeltaCallbackPool, weth.address, usdc.address, 3000, deployer=admin)
    chain.fund(weth, rich.address, 100 * WETH_DECIMALS)
    chain.fund(usdc, rich.address, 330_000 * USDC_DECIMALS)
    chain.transact(admin, rich, "sync")

    quoter = chain.deploy(StaticQuoter, deployer=admin)
    router = chain.deploy(
        BackrunRouter,
        quoter.address if with_quoter else None,
        deployer=admin,
    )

    return World(
        chain=chain,
        admin=admin,
        searcher=chain.account("searcher"),
        trader=chain.account("trader"),
        weth=weth,
        usdc=usdc,
        cheap=cheap,
        rich=rich,
        quoter=quoter,
        router=router,
    )


@pytest.fixture
def world() -> World:
    """Fresh two-pool world with a router wired to a static quoter."""
    return build_world()


@pytest.fixture
def make_world():
    """Factory for independent worlds (determinism checks)."""
    return build_world
