"""
tests/unit/test_quote_client.py - Tests for quoting/client.py

Quoter output is untrusted: malformed non-empty quotes are rejected before
any pool is touched.
"""

from dataclasses import replace

import pytest

from chains.ledger import Chain
from core.constants import MAX_UINT112, ZERO_ADDRESS, DexType
from core.exceptions import ErrorCode, QuoteError
from core.models import QuotedRoute, QuoteResult
from quoting.client import QuoteClient, build_route, coerce_quote
from quoting.static import StaticQuoter

TOKEN_A = Chain.account("token-a")
TOKEN_B = Chain.account("token-b")
TOKEN_C = Chain.account("token-c")
POOL_1 = Chain.account("pool-1")
POOL_2 = Chain.account("pool-2")
POOL_3 = Chain.account("pool-3")


def two_hop_quote(**overrides) -> QuoteResult:
    quote = QuoteResult(
        profit=50,
        route=QuotedRoute(
            pools=[POOL_1, POOL_2],
            dex_types=[1, 2],
            dex_meta=[0x00, 0x80],
            amount=1_000,
            tokens=[TOKEN_A, TOKEN_B, TOKEN_A],
        ),
        hop_amounts=[400, 1_050],
        initial_hop_index=0,
    )
    route_fields = {k: v for k, v in overrides.items() if hasattr(quote.route, k)}
    quote_fields = {k: v for k, v in overrides.items() if k not in route_fields}
    return replace(quote, route=replace(quote.route, **route_fields), **quote_fields)


def assert_malformed(quote: QuoteResult, max_hops: int = 8) -> QuoteError:
    with pytest.raises(QuoteError) as exc_info:
        build_route(quote, max_hops)
    assert exc_info.value.code == ErrorCode.QUOTE_MALFORMED
    return exc_info.value


class TestBuildRoute:
    """Validation and hop assembly."""

    def test_empty_route_is_no_opportunity(self):
        assert build_route(QuoteResult.empty()) is None

    def test_empty_route_with_profit_is_still_empty(self):
        assert build_route(replace(QuoteResult.empty(), profit=10**18)) is None

    def test_hop_amounts(self):
        route = build_route(two_hop_quote())
        first, second = route.hops

        assert first.pool == POOL_1
        assert first.dex_type == DexType.PUSH_CALLBACK
        assert (first.token_in, first.token_out) == (TOKEN_A, TOKEN_B)
        assert (first.amount_in, first.amount_out) == (1_000, 400)

        assert second.dex_type == DexType.DELTA_CALLBACK
        assert second.dex_meta == 0x80
        assert (second.token_in, second.token_out) == (TOKEN_B, TOKEN_A)
        assert (second.amount_in, second.amount_out) == (400, 1_050)

        assert route.amount_in == 1_000
        assert route.profit_token == TOKEN_A

    def test_rotation(self):
        quote = two_hop_quote(
            pools=[POOL_1, POOL_2, POOL_3],
            dex_types=[1, 2, 1],
            dex_meta=[0, 0x80, 0],
            tokens=[TOKEN_A, TOKEN_B, TOKEN_C, TOKEN_A],
            hop_amounts=[400, 900, 1_050],
            initial_hop_index=2,
        )
        route = build_route(quote)
        assert [h.pool for h in route.ordered_hops()] == [POOL_3, POOL_1, POOL_2]
        assert route.profit_token == TOKEN_A

    def test_lowercase_addresses_accepted(self):
        route = build_route(two_hop_quote(pools=[POOL_1.lower(), POOL_2.lower()]))
        assert route.hops[0].pool == POOL_1

    def test_too_many_hops(self):
        err = assert_malformed(two_hop_quote(), max_hops=1)
        assert err.details["max_hops"] == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"dex_types": [1]},
            {"dex_meta": [0, 0, 0]},
            {"hop_amounts": [400]},
            {"tokens": [TOKEN_A, TOKEN_B]},
        ],
    )
    def test_inconsistent_lengths(self, overrides):
        assert_malformed(two_hop_quote(**overrides))

    @pytest.mark.parametrize("index", [2, -1, 7])
    def test_initial_index_outside_route(self, index):
        assert_malformed(two_hop_quote(initial_hop_index=index))

    def test_amount_above_uint112(self):
        assert_malformed(two_hop_quote(amount=MAX_UINT112 + 1))

    def test_not_a_cycle(self):
        err = assert_malformed(two_hop_quote(tokens=[TOKEN_A, TOKEN_B, TOKEN_C]))
        assert err.details["end"] == TOKEN_C

    def test_zero_address_pool(self):
        assert_malformed(two_hop_quote(pools=[POOL_1, ZERO_ADDRESS]))

    def test_invalid_address(self):
        assert_malformed(two_hop_quote(pools=[POOL_1, "0xdeadbeef"]))

    def test_unknown_dex_type(self):
        assert_malformed(two_hop_quote(dex_types=[1, 3]))

    def test_metadata_not_a_byte(self):
        assert_malformed(two_hop_quote(dex_meta=[0, 256]))

    def test_hop_swaps_token_for_itself(self):
        assert_malformed(two_hop_quote(tokens=[TOKEN_A, TOKEN_A, TOKEN_A]))

    def test_negative_hop_amount(self):
        assert_malformed(two_hop_quote(hop_amounts=[-1, 1_050]))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"hop_amounts": None},
            {"dex_types": None},
            {"tokens": 7},
        ],
    )
    def test_wrong_field_shapes(self, overrides):
        assert_malformed(two_hop_quote(**overrides))

    def test_missing_route(self):
        assert_malformed(QuoteResult(profit=1, route=None, hop_amounts=[]))


class TestCoerceQuote:
    def test_abi_tuple(self):
        raw = (
            50,
            ([POOL_1, POOL_2], [1, 2], [0, 0x80], 1_000, [TOKEN_A, TOKEN_B, TOKEN_A]),
            [400, 1_050],
            0,
        )
        assert coerce_quote(raw) == two_hop_quote()

    def test_passthrough(self):
        quote = two_hop_quote()
        assert coerce_quote(quote) is quote

    def test_garbage(self):
        with pytest.raises(QuoteError) as exc_info:
            coerce_quote(42)
        assert exc_info.value.code == ErrorCode.QUOTE_MALFORMED


class TestQuoteClient:
    """One quoter call per fetch."""

    def test_fetch(self):
        chain = Chain()
        owner = chain.account("owner")
        quoter = chain.deploy(StaticQuoter, deployer=owner)
        chain.transact(owner, quoter, "set_quote", POOL_1, two_hop_quote())

        profit, route = QuoteClient(max_hops=4).fetch(chain, quoter.address, POOL_1, 0, 10)

        assert profit == 50
        assert len(route.hops) == 2
        assert quoter.call_count == 1

    def test_unknown_pool_has_no_route(self):
        chain = Chain()
        quoter = chain.deploy(StaticQuoter, deployer=chain.account("owner"))
        profit, route = QuoteClient().fetch(chain, quoter.address, POOL_2, 1, 10)
        assert (profit, route) == (0, None)
