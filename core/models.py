"""
core/models.py - Core data models.

All amounts are ints in the token's smallest unit. NO FLOATS.

ROUTE CONTRACT:
===============
A quoted route of N hops carries:
  pools[N], dex_types[N], dex_meta[N], amount, tokens[N + 1]
plus hop_amounts[N] (quoted output of each hop) and initial_hop_index.

  hop i input token  = tokens[i]
  hop i output token = tokens[i + 1]
  hop i amount_in    = amount if i == 0 else hop_amounts[i - 1]
  hop i amount_out   = hop_amounts[i]

The route is a cycle (tokens[0] == tokens[N]). Execution starts at
initial_hop_index and walks hops[k:] + hops[:k].
===============
"""

from dataclasses import dataclass, field
from typing import Any

from core.constants import NATIVE_TOKEN, ZERO_ADDRESS, DexType


@dataclass(frozen=True)
class Hop:
    """One pool interaction within a route."""

    pool: str
    dex_type: DexType
    dex_meta: int
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool": self.pool,
            "dex_type": self.dex_type.name,
            "dex_meta": self.dex_meta,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
        }


@dataclass(frozen=True)
class Route:
    """
    Validated, immutable route.

    Owned by a single trigger; never shared across triggers.
    """

    hops: tuple[Hop, ...]
    amount_in: int
    initial_hop_index: int = 0

    @property
    def is_empty(self) -> bool:
        return len(self.hops) == 0

    def ordered_hops(self) -> tuple[Hop, ...]:
        """Hops in execution order, starting at the resume index."""
        k = self.initial_hop_index
        return self.hops[k:] + self.hops[:k]

    @property
    def profit_token(self) -> str:
        """
        Token of `amount_in`. The cycle's surplus accrues in it whatever
        hop execution starts at.
        """
        if self.is_empty:
            return ZERO_ADDRESS
        return self.hops[0].token_in


@dataclass(frozen=True)
class QuotedRoute:
    """Raw route arrays as returned by a quoter. Untrusted."""

    pools: list[str] = field(default_factory=list)
    dex_types: list[int] = field(default_factory=list)
    dex_meta: list[int] = field(default_factory=list)
    amount: int = 0
    tokens: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class QuoteResult:
    """Raw quoter response. Untrusted."""

    profit: int
    route: QuotedRoute
    hop_amounts: list[int]
    initial_hop_index: int = 0

    @classmethod
    def empty(cls) -> "QuoteResult":
        return cls(profit=0, route=QuotedRoute(), hop_amounts=[], initial_hop_index=0)


@dataclass(frozen=True)
class BackrunResult:
    """Outcome of a trigger: (profit, profit_token)."""

    profit: int = 0
    profit_token: str = ZERO_ADDRESS

    @classmethod
    def zero(cls) -> "BackrunResult":
        return cls(0, ZERO_ADDRESS)

    def __iter__(self):
        # Allows `profit, token = router.trigger_backrun(...)`
        return iter((self.profit, self.profit_token))


@dataclass(frozen=True)
class SplitResult:
    """Outcome of a proportional split."""

    token: str
    amount: int
    recipients: tuple[str, ...]
    amounts: tuple[int, ...]

    @property
    def distributed(self) -> int:
        return sum(self.amounts)

    @property
    def dust(self) -> int:
        """Integer-division remainder left unassigned."""
        return self.amount - self.distributed

    @property
    def is_native(self) -> bool:
        return self.token == NATIVE_TOKEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "amount": self.amount,
            "recipients": list(self.recipients),
            "amounts": list(self.amounts),
            "dust": self.dust,
        }
