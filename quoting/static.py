"""
quoting/static.py - Quoter serving pre-computed quotes per pool.

Used by the scenario CLI and tests. Pools without a configured quote get an
empty route (no opportunity).
"""

from typing import Sequence

from chains.ledger import Chain, Contract
from core.abi import checksum
from core.constants import DexType
from core.exceptions import AccessDeniedError, ErrorCode, QuoteError
from core.math import positive_part
from core.models import QuotedRoute, QuoteResult
from dex.metadata import decode_direction
from dex.pools import DeltaCallbackPool, PushCallbackPool


def quote_from_pools(
    chain: Chain,
    start_token: str,
    amount_in: int,
    legs: Sequence[tuple[str, int]],
    initial_hop_index: int = 0,
) -> QuoteResult:
    """
    Build a quote by walking simulated pools at their current reserves.

    Args:
        legs: (pool address, metadata byte) per hop, in route order

    Hop amounts are computed in route order from `amount_in`.
    """
    token = checksum(start_token)
    pools, dex_types, dex_meta, tokens, hop_amounts = [], [], [], [token], []
    amount = amount_in
    for position, (pool_address, meta) in enumerate(legs):
        pool = chain.contract_at(pool_address)
        if isinstance(pool, PushCallbackPool):
            dex_type = DexType.PUSH_CALLBACK
        elif isinstance(pool, DeltaCallbackPool):
            dex_type = DexType.DELTA_CALLBACK
        else:
            raise QuoteError(
                ErrorCode.QUOTE_MALFORMED,
                f"{type(pool).__name__} is not a supported pool",
                details={"hop": position, "pool": pool.address},
            )

        zero_for_one = decode_direction(meta)
        token_in, token_out = (
            (pool.token0, pool.token1) if zero_for_one else (pool.token1, pool.token0)
        )
        if token_in != token:
            raise QuoteError(
                ErrorCode.QUOTE_MALFORMED,
                f"Hop {position} spends {token_in}, route holds {token}",
                details={"hop": position, "pool": pool.address},
            )

        amount = pool.get_amount_out(amount, zero_for_one)
        pools.append(pool.address)
        dex_types.append(int(dex_type))
        dex_meta.append(meta)
        tokens.append(token_out)
        hop_amounts.append(amount)
        token = token_out

    return QuoteResult(
        profit=positive_part(amount - amount_in),
        route=QuotedRoute(
            pools=pools,
            dex_types=dex_types,
            dex_meta=dex_meta,
            amount=amount_in,
            tokens=tokens,
        ),
        hop_amounts=hop_amounts,
        initial_hop_index=initial_hop_index,
    )


class StaticQuoter(Contract):
    """Owner-configured quote table."""

    def __init__(self, chain: Chain, address: str):
        super().__init__(chain, address)
        self.owner = self.msg_sender
        self.quotes: dict[str, QuoteResult] = {}
        self.call_count = 0

    def set_quote(self, pool: str, quote: QuoteResult) -> None:
        if self.msg_sender != self.owner:
            raise AccessDeniedError(
                "Only the owner can set quotes",
                details={"caller": self.msg_sender},
            )
        self.quotes[checksum(pool)] = quote

    def get_quote(self, pool: str, asset_id: int, amount_in: int) -> QuoteResult:
        self.call_count += 1
        return self.quotes.get(checksum(pool), QuoteResult.empty())
