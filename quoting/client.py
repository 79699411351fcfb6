"""
quoting/client.py - Quote client.

Calls the quoter collaborator exactly once per trigger and turns its raw,
untrusted response into a validated Route.

QUOTE CONTRACT:
===============
- empty route (no pools)        -> no opportunity, (profit, None)
- inconsistent non-empty quote  -> QuoteError(QUOTE_MALFORMED)
- quoter revert                 -> propagates unchanged (no retry)
===============
"""

from typing import Any, Optional

from chains.ledger import Chain
from core.abi import checksum, is_zero_address
from core.constants import DEFAULT_MAX_HOPS, MAX_UINT8, MAX_UINT112, MAX_UINT256, DexType
from core.exceptions import ErrorCode, QuoteError, ValidationError
from core.logging import get_logger
from core.models import Hop, QuotedRoute, QuoteResult, Route

logger = get_logger(__name__)


def _malformed(message: str, **details: Any) -> QuoteError:
    return QuoteError(ErrorCode.QUOTE_MALFORMED, message, details=details)


def _is_uint(value: Any, max_value: int) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= max_value
    )


def coerce_quote(raw: Any) -> QuoteResult:
    """
    Accept a QuoteResult or the ABI-shaped 4-tuple
    (profit, (pools, dexTypes, dexMeta, amount, tokens), amounts, index).
    """
    if isinstance(raw, QuoteResult):
        return raw
    try:
        profit, route, hop_amounts, initial_hop_index = raw
        if not isinstance(route, QuotedRoute):
            pools, dex_types, dex_meta, amount, tokens = route
            route = QuotedRoute(
                pools=list(pools),
                dex_types=list(dex_types),
                dex_meta=list(dex_meta),
                amount=amount,
                tokens=list(tokens),
            )
        return QuoteResult(
            profit=profit,
            route=route,
            hop_amounts=list(hop_amounts),
            initial_hop_index=initial_hop_index,
        )
    except (TypeError, ValueError) as e:
        raise _malformed(f"Unrecognized quote shape: {e}", raw_type=type(raw).__name__)


def build_route(quote: QuoteResult, max_hops: int = DEFAULT_MAX_HOPS) -> Optional[Route]:
    """
    Validate a raw quote and build the immutable Route.

    Returns None when the quote carries no route. Fields of the wrong shape
    (None arrays, non-sequence routes) are QUOTE_MALFORMED.
    """
    try:
        return _build_route(quote, max_hops)
    except (AttributeError, TypeError, ValueError) as e:
        raise _malformed(f"Unrecognized quote shape: {e}", raw_type=type(quote).__name__)


def _build_route(quote: QuoteResult, max_hops: int) -> Optional[Route]:
    raw = quote.route
    n = len(raw.pools)
    if n == 0:
        return None

    if n > max_hops:
        raise _malformed(f"Route has {n} hops, limit is {max_hops}", hops=n, max_hops=max_hops)

    lengths = {
        "dex_types": len(raw.dex_types),
        "dex_meta": len(raw.dex_meta),
        "hop_amounts": len(quote.hop_amounts),
    }
    if any(length != n for length in lengths.values()) or len(raw.tokens) != n + 1:
        raise _malformed(
            "Quote arrays have inconsistent lengths",
            pools=n,
            tokens=len(raw.tokens),
            **lengths,
        )

    if not _is_uint(quote.initial_hop_index, n - 1):
        raise _malformed(
            f"Initial hop index {quote.initial_hop_index!r} outside route",
            initial_hop_index=repr(quote.initial_hop_index),
            hops=n,
        )
    if not _is_uint(raw.amount, MAX_UINT112):
        raise _malformed("Route amount is not a uint112", amount=repr(raw.amount))
    if not _is_uint(quote.profit, MAX_UINT256):
        raise _malformed("Profit estimate is not a uint256", profit=repr(quote.profit))

    try:
        pools = [checksum(p) for p in raw.pools]
        tokens = [checksum(t) for t in raw.tokens]
    except ValidationError as e:
        raise _malformed(e.message, **e.details)

    if any(is_zero_address(a) for a in pools + tokens):
        raise _malformed("Route contains the zero address")
    if tokens[0] != tokens[n]:
        raise _malformed("Route is not a cycle", start=tokens[0], end=tokens[n])

    hops = []
    for i in range(n):
        try:
            dex_type = DexType(raw.dex_types[i])
        except ValueError:
            raise _malformed(f"Unknown dex type {raw.dex_types[i]!r}", hop=i)
        if not _is_uint(raw.dex_meta[i], MAX_UINT8):
            raise _malformed(f"Metadata {raw.dex_meta[i]!r} is not a byte", hop=i)
        if not _is_uint(quote.hop_amounts[i], MAX_UINT256):
            raise _malformed(f"Hop amount {quote.hop_amounts[i]!r} is not a uint256", hop=i)
        if tokens[i] == tokens[i + 1]:
            raise _malformed("Hop swaps a token for itself", hop=i, token=tokens[i])

        hops.append(Hop(
            pool=pools[i],
            dex_type=dex_type,
            dex_meta=raw.dex_meta[i],
            token_in=tokens[i],
            token_out=tokens[i + 1],
            amount_in=raw.amount if i == 0 else quote.hop_amounts[i - 1],
            amount_out=quote.hop_amounts[i],
        ))

    return Route(
        hops=tuple(hops),
        amount_in=raw.amount,
        initial_hop_index=quote.initial_hop_index,
    )


class QuoteClient:
    """
    Stateless client for a quoter collaborator.

    Usage:
        client = QuoteClient(max_hops=8)
        profit, route = client.fetch(chain, quoter_address, pool, 0, amount_in)
    """

    def __init__(self, max_hops: int = DEFAULT_MAX_HOPS):
        self.max_hops = max_hops

    def fetch(
        self,
        chain: Chain,
        quoter: str,
        pool: str,
        asset_id: int,
        swap_amount_in: int,
    ) -> tuple[int, Optional[Route]]:
        """
        One quoter call, no retries.

        Returns:
            (profit_estimate, route or None for no opportunity)
        """
        raw = chain.call(quoter, "get_quote", pool, asset_id, swap_amount_in)
        quote = coerce_quote(raw)
        route = build_route(quote, self.max_hops)

        logger.debug(
            "Quote received",
            extra={
                "context": {
                    "quoter": quoter,
                    "pool": pool,
                    "asset_id": asset_id,
                    "profit_estimate": quote.profit,
                    "hops": 0 if route is None else len(route.hops),
                }
            },
        )
        return quote.profit, route
