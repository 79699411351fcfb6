"""
tests/unit/test_router.py - Tests for execution/router.py

Trigger flow, profit accounting, admin surface and reentrancy.
"""

import logging

import pytest

from chains.ledger import Contract, Erc20Token
from core.abi import address_to_pool_id
from core.constants import MAX_UINT112, ZERO_ADDRESS
from core.exceptions import (
    AccessDeniedError,
    ConfigError,
    ErrorCode,
    ExecutionError,
    QuoteError,
    ValidationError,
)
from core.models import BackrunResult, QuoteResult
from dex.pools import DeltaCallbackPool, PushCallbackPool
from quoting.static import quote_from_pools

USDC_DECIMALS = 10**6
WETH_DECIMALS = 10**18


def trigger(world, pool=None, amount=WETH_DECIMALS, token0_in=True, recipient=None):
    pool = pool or world.rich.address
    return world.chain.transact(
        world.searcher,
        world.router,
        "trigger_backrun",
        address_to_pool_id(pool),
        amount,
        token0_in,
        recipient or world.searcher,
    )


class RecordingQuoter(Contract):
    """Remembers what it was asked; never finds an opportunity."""

    def __init__(self, chain, address):
        super().__init__(chain, address)
        self.requests = []

    def get_quote(self, pool, asset_id, amount_in):
        self.requests.append((pool, asset_id, amount_in))
        return QuoteResult.empty()


class ReentrantQuoter(Contract):
    """Calls back into the router while the trigger is in flight."""

    def __init__(self, chain, address, router):
        super().__init__(chain, address)
        self.router = router
        self.nested = None

    def get_quote(self, pool, asset_id, amount_in):
        self.nested = self.chain.call(
            self.router, "trigger_backrun", pool, amount_in, asset_id == 0, self.address
        )
        return QuoteResult.empty()


class TestTrigger:
    """Profitable cycle: USDC -> WETH (cheap) -> USDC (rich)."""

    def test_profit_matches_quote(self, world):
        quote = world.cycle_quote()
        assert quote.profit > 0
        world.set_quote(world.rich.address, quote)

        profit, token = trigger(world)

        assert profit == quote.profit
        assert token == world.usdc.address
        assert world.balance(world.usdc, world.searcher) == profit
        assert world.balance(world.usdc, world.router.address) == 0
        assert world.balance(world.weth, world.router.address) == 0
        assert world.quoter.call_count == 1

    def test_pool_reserves_move(self, world):
        quote = world.cycle_quote()
        world.set_quote(world.rich.address, quote)
        trigger(world)

        weth_bought = quote.hop_amounts[0]
        assert world.cheap.get_reserves() == (
            100 * WETH_DECIMALS - weth_bought,
            300_000 * USDC_DECIMALS + quote.route.amount,
        )
        assert world.rich.reserve0 == 100 * WETH_DECIMALS + weth_bought

    def test_event(self, world):
        quote = world.cycle_quote()
        world.set_quote(world.rich.address, quote)
        pool_id = address_to_pool_id(world.rich.address)

        world.chain.transact(
            world.searcher, world.router, "trigger_backrun", pool_id, 5, False, world.searcher
        )

        (event,) = world.chain.events("BackrunExecuted")
        assert event.address == world.router.address
        assert event.args == {
            "trigger_pool_id": pool_id,
            "swap_amount_in": 5,
            "token0_in": False,
            "quote_profit": quote.profit,
            "profit": quote.profit,
            "profit_token": world.usdc.address,
            "recipient": world.searcher,
        }

    def test_no_opportunity(self, world):
        result = trigger(world)

        assert result == BackrunResult.zero()
        assert tuple(result) == (0, ZERO_ADDRESS)
        assert world.chain.events("BackrunExecuted") == []
        assert world.quoter.call_count == 1

    def test_unprofitable_route_reverts(self, world):
        """Reverse cycle loses money; paying the first pool fails."""
        quote = quote_from_pools(
            world.chain,
            world.usdc.address,
            3_000 * USDC_DECIMALS,
            [(world.rich.address, 0x00), (world.cheap.address, 0x80)],
        )
        assert quote.profit == 0
        world.set_quote(world.rich.address, quote)

        with pytest.raises(ExecutionError) as exc_info:
            trigger(world)
        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert world.cheap.get_reserves() == (100 * WETH_DECIMALS, 300_000 * USDC_DECIMALS)
        assert world.quoter.call_count == 0

    def test_zero_profit_still_emits(self, world):
        """A funded router absorbs the loss; realized profit floors at zero."""
        quote = quote_from_pools(
            world.chain,
            world.usdc.address,
            3_000 * USDC_DECIMALS,
            [(world.rich.address, 0x00), (world.cheap.address, 0x80)],
        )
        world.set_quote(world.rich.address, quote)
        world.chain.fund(world.usdc, world.router.address, 10_000 * USDC_DECIMALS)

        profit, token = trigger(world)

        assert (profit, token) == (0, world.usdc.address)
        assert world.balance(world.usdc, world.searcher) == 0
        (event,) = world.chain.events("BackrunExecuted")
        assert event.args["profit"] == 0

    def test_rotated_route(self, world):
        """Execution starts at hop 1 and ends on the push pair; profit is still USDC."""
        quote = quote_from_pools(
            world.chain,
            world.usdc.address,
            3_000 * USDC_DECIMALS,
            [(world.cheap.address, 0x00), (world.rich.address, 0x80)],
            initial_hop_index=1,
        )
        assert quote.profit > 0
        world.set_quote(world.rich.address, quote)

        profit, token = trigger(world)

        assert (profit, token) == (quote.profit, world.usdc.address)
        assert world.balance(world.usdc, world.searcher) == quote.profit
        assert world.balance(world.usdc, world.router.address) == 0
        assert world.balance(world.weth, world.router.address) == 0
        (event,) = world.chain.events("BackrunExecuted")
        assert event.args["profit"] == quote.profit
        history = world.router.last_execution.history
        assert [t.hop for t in history] == [0, 1, 1]

    def test_malformed_quote_reverts(self, world):
        quote = world.cycle_quote()
        broken = QuoteResult(
            profit=quote.profit,
            route=quote.route,
            hop_amounts=quote.hop_amounts[:1],
        )
        world.set_quote(world.rich.address, broken)
        with pytest.raises(QuoteError) as exc_info:
            trigger(world)
        assert exc_info.value.code == ErrorCode.QUOTE_MALFORMED

    def test_deterministic(self, make_world):
        outcomes = []
        for _ in range(2):
            w = make_world()
            w.set_quote(w.rich.address, w.cycle_quote())
            result = trigger(w)
            outcomes.append((result, [(log.name, log.args) for log in w.chain.logs]))
        assert outcomes[0] == outcomes[1]


def deploy_pool(world, pool_cls, token0, token1, fee, reserve0, reserve1):
    pool = world.chain.deploy(pool_cls, token0.address, token1.address, fee, deployer=world.admin)
    world.chain.fund(token0, pool.address, reserve0)
    world.chain.fund(token1, pool.address, reserve1)
    world.chain.transact(world.admin, pool, "sync")
    return pool


class TestRouteShapes:
    def test_zero_amount_hops_still_swap(self, world):
        quote = world.cycle_quote(amount_in=0)
        assert quote.hop_amounts == [0, 0]
        world.set_quote(world.rich.address, quote)

        result = trigger(world)

        assert tuple(result) == (0, world.usdc.address)
        swaps = world.chain.events("Swap")
        assert [log.address for log in swaps] == [world.rich.address, world.cheap.address]
        assert world.chain.events("BackrunExecuted")[0].args["profit"] == 0

    def test_route_ending_on_push_pool(self, world):
        """WETH -> USDC on rich, USDC -> WETH on cheap; the final pair is pre-paid."""
        quote = quote_from_pools(
            world.chain,
            world.weth.address,
            WETH_DECIMALS,
            [(world.rich.address, 0x80), (world.cheap.address, 0x00)],
        )
        assert quote.profit > 0
        world.set_quote(world.rich.address, quote)

        profit, token = trigger(world)

        assert (profit, token) == (quote.profit, world.weth.address)
        assert world.balance(world.weth, world.searcher) == quote.profit
        assert world.balance(world.usdc, world.router.address) == 0
        (swap,) = [log for log in world.chain.events("Swap") if log.address == world.cheap.address]
        assert swap.args["amount1_in"] == quote.hop_amounts[0]
        assert swap.args["amount0_out"] == quote.hop_amounts[1]

    def test_three_hop_cycle(self, world):
        """USDC -> WETH (push) -> DAI (delta) -> USDC (push)."""
        dai = world.chain.deploy(Erc20Token, "Dai Stablecoin", "DAI", 18, deployer=world.admin)
        weth_dai = deploy_pool(
            world, DeltaCallbackPool, world.weth, dai, 3000,
            100 * WETH_DECIMALS, 330_000 * 10**18,
        )
        dai_usdc = deploy_pool(
            world, PushCallbackPool, dai, world.usdc, 30,
            1_000_000 * 10**18, 1_000_000 * USDC_DECIMALS,
        )
        quote = quote_from_pools(
            world.chain,
            world.usdc.address,
            3_000 * USDC_DECIMALS,
            [
                (world.cheap.address, 0x00),
                (weth_dai.address, 0x80),
                (dai_usdc.address, 0x80),
            ],
        )
        assert quote.profit > 0
        world.set_quote(world.rich.address, quote)

        profit, token = trigger(world)

        assert (profit, token) == (quote.profit, world.usdc.address)
        assert world.balance(world.usdc, world.searcher) == quote.profit
        for held in (world.usdc, world.weth, dai):
            assert world.balance(held, world.router.address) == 0
        history = world.router.last_execution.history
        assert [t.hop for t in history] == [0, 1, 2, 2]
        assert world.router.last_execution.state.value == "SETTLED"


class TestTriggerInputs:
    def test_swap_amount_bound(self, world):
        assert trigger(world, amount=MAX_UINT112) == BackrunResult.zero()
        with pytest.raises(ValidationError) as exc_info:
            trigger(world, amount=MAX_UINT112 + 1)
        assert exc_info.value.code == ErrorCode.AMOUNT_OUT_OF_RANGE

    def test_quoter_not_set(self, make_world):
        w = make_world(with_quoter=False)
        with pytest.raises(ConfigError) as exc_info:
            trigger(w)
        assert exc_info.value.code == ErrorCode.QUOTER_NOT_SET

    def test_quoter_request(self, world):
        quoter = world.chain.deploy(RecordingQuoter, deployer=world.admin)
        world.chain.transact(world.admin, world.router, "set_quoter", quoter.address)

        trigger(world, amount=42, token0_in=True)
        trigger(world, amount=43, token0_in=False)

        assert quoter.requests == [
            (world.rich.address, 0, 42),
            (world.rich.address, 1, 43),
        ]

    def test_pool_id_high_bits_ignored(self, world):
        quoter = world.chain.deploy(RecordingQuoter, deployer=world.admin)
        world.chain.transact(world.admin, world.router, "set_quoter", quoter.address)
        pool_id = "0x" + "ab" * 12 + world.cheap.address[2:].lower()

        world.chain.transact(
            world.searcher, world.router, "trigger_backrun", pool_id, 1, True, world.searcher
        )
        assert quoter.requests[0][0] == world.cheap.address


class TestReentrancy:
    def test_nested_trigger_returns_zero(self, world, caplog):
        quoter = world.chain.deploy(ReentrantQuoter, world.router.address, deployer=world.admin)
        world.chain.transact(world.admin, world.router, "set_quoter", quoter.address)

        with caplog.at_level(logging.WARNING):
            result = trigger(world)

        assert result == BackrunResult.zero()
        assert quoter.nested == BackrunResult.zero()
        assert "Reentrant call ignored" in caplog.text
        assert not world.router._guard.entered


class TestAdmin:
    """Admin-only configuration and withdrawals."""

    def test_deployer_is_admin(self, world):
        assert world.chain.call(world.router, "get_admin") == world.admin
        assert world.chain.call(world.router, "get_quoter") == world.quoter.address

    def test_set_quoter(self, world):
        new_quoter = world.chain.account("new-quoter")
        world.chain.transact(world.admin, world.router, "set_quoter", new_quoter)

        assert world.router.quoter == new_quoter
        (event,) = world.chain.events("QuoterUpdated")
        assert event.args == {"previous": world.quoter.address, "quoter": new_quoter}

    def test_set_quoter_denied(self, world):
        with pytest.raises(AccessDeniedError):
            world.chain.transact(world.searcher, world.router, "set_quoter", world.searcher)
        assert world.router.quoter == world.quoter.address

    def test_set_quoter_zero(self, world):
        with pytest.raises(ConfigError) as exc_info:
            world.chain.transact(world.admin, world.router, "set_quoter", ZERO_ADDRESS)
        assert exc_info.value.code == ErrorCode.ZERO_ADDRESS

    def test_withdraw_token(self, world):
        world.chain.fund(world.usdc, world.router.address, 500)
        world.chain.transact(world.admin, world.router, "withdraw_token", world.usdc.address, 200, world.admin)

        assert world.balance(world.usdc, world.admin) == 200
        assert world.balance(world.usdc, world.router.address) == 300
        (event,) = world.chain.events("TokenWithdrawn")
        assert event.args["amount"] == 200

    def test_withdraw_token_denied(self, world):
        world.chain.fund(world.usdc, world.router.address, 500)
        with pytest.raises(AccessDeniedError):
            world.chain.transact(
                world.searcher, world.router, "withdraw_token", world.usdc.address, 500, world.searcher
            )

    def test_withdraw_token_to_zero(self, world):
        with pytest.raises(ConfigError):
            world.chain.transact(
                world.admin, world.router, "withdraw_token", world.usdc.address, 0, ZERO_ADDRESS
            )

    def test_withdraw_eth(self, world):
        world.chain.set_native_balance(world.router.address, 100)
        world.chain.transact(world.admin, world.router, "withdraw_eth", 40, world.admin)

        assert world.chain.native_balance(world.admin) == 40
        assert world.chain.native_balance(world.router.address) == 60

    def test_withdraw_eth_overdraw(self, world):
        with pytest.raises(ExecutionError) as exc_info:
            world.chain.transact(world.admin, world.router, "withdraw_eth", 1, world.admin)
        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE
