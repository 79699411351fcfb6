"""
execution/executor.py - Multi-hop swap executor and callback dispatcher.

EXECUTION CONTRACT:
===================
Hop i's pool sends its output to the router first, then calls back. Inside
the callback the router executes hop i+1 (nested), then pays pool i what it
is owed. The final hop's output lands on the router and nothing more is
scheduled.

  push family (V2):   non-final hop -> swap with continuation payload
                      final hop     -> input pre-paid, swap with empty data
                      callback pays the quoted input
  delta family (V3):  always called back; pays the positive delta
                      (never more than the quoted input)

Continuation state travels in the callback payload: (pending hop index,
encoded route). The only storage used is the route digest slot, valid while
the reentrancy guard is held.

Callback checks, in order:
  1. an execution is in progress
  2. payload route matches the stored digest
  3. caller is the pending hop's pool
  4. callback kind matches the hop's family
  5. hop index is the current hop
  6. push family only: the reported swap sender is this router
===================
"""

from typing import Optional

from chains.ledger import Chain, Contract
from core.abi import (
    UNISWAP_V2_CALL_SELECTOR,
    UNISWAP_V3_SWAP_CALLBACK_SELECTOR,
    checksum,
    decode_args,
    decode_continuation,
    decode_route,
    encode_continuation,
    encode_route,
    route_digest,
)
from core.constants import (
    CALLBACK_DEX_TYPE,
    MAX_SQRT_RATIO,
    MIN_SQRT_RATIO,
    CallbackKind,
    DexType,
)
from core.exceptions import ErrorCode, ExecutionError, ReflexError, ValidationError
from core.logging import get_logger
from core.math import positive_part
from core.models import Hop, Route
from dex.metadata import decode_direction
from execution.reentrancy import GracefulReentrancyGuard
from execution.state_machine import ExecutionContext

logger = get_logger(__name__)

SELECTOR_KINDS: dict[bytes, CallbackKind] = {
    UNISWAP_V2_CALL_SELECTOR: CallbackKind.UNISWAP_V2_CALL,
    UNISWAP_V3_SWAP_CALLBACK_SELECTOR: CallbackKind.UNISWAP_V3_SWAP_CALLBACK,
}

V2_CALL_ARG_TYPES = ["address", "uint256", "uint256", "bytes"]
V3_SWAP_CALLBACK_ARG_TYPES = ["int256", "int256", "bytes"]


def _callback_error(code: ErrorCode, message: str, **details) -> ExecutionError:
    return ExecutionError(code, message, details=details)


class MultiHopExecutor(Contract):
    """Route execution engine; BackrunRouter adds the trigger surface."""

    def __init__(self, chain: Chain, address: str):
        super().__init__(chain, address)
        self._guard = GracefulReentrancyGuard()
        self._pending_route_digest: Optional[bytes] = None
        self._context: Optional[ExecutionContext] = None

    @property
    def last_execution(self) -> Optional[ExecutionContext]:
        return self._context

    # =========================================================================
    # TOP-LEVEL ENTRY
    # =========================================================================

    def _execute_route(self, route: Route) -> int:
        """
        Execute a validated route; returns realized profit in
        `route.profit_token`, floored at zero. Must run with the guard held.
        """
        if route.is_empty:
            return 0

        hops = route.ordered_hops()
        blob = encode_route(hops)
        digest = route_digest(blob)
        profit_token = route.profit_token

        balance_before = self.chain.token_balance(profit_token, self.address)

        self._pending_route_digest = digest
        self._context = ExecutionContext(route_digest="0x" + digest.hex(), hop_count=len(hops))
        self._context.begin()
        try:
            self._execute_hop(0, hops, blob)
            self._context.settle()
        except ReflexError as e:
            self._context.fail(reason=e.code.value)
            logger.warning(
                f"Route execution failed at hop {self._context.current_hop}: {e}",
                extra={"context": {"error_code": e.code.value, "route_digest": self._context.route_digest}},
            )
            raise
        finally:
            self._pending_route_digest = None

        balance_after = self.chain.token_balance(profit_token, self.address)
        profit = positive_part(balance_after - balance_before)

        logger.debug(
            f"Route settled: {len(hops)} hops, profit {profit}",
            extra={"context": {"route_digest": self._context.route_digest, "profit_token": profit_token}},
        )
        return profit

    def _execute_hop(self, index: int, hops: tuple[Hop, ...], blob: bytes) -> None:
        """Call hop `index`'s pool swap entrypoint."""
        hop = hops[index]
        is_final = index == len(hops) - 1
        zero_for_one = decode_direction(hop.dex_meta)
        payload = encode_continuation(index, blob)

        logger.debug(
            f"Hop {index}: {hop.dex_type.name} pool {hop.pool[:10]}...",
            extra={"context": {"hop": index, **hop.to_dict()}},
        )

        if hop.dex_type == DexType.PUSH_CALLBACK:
            amount0_out, amount1_out = (
                (0, hop.amount_out) if zero_for_one else (hop.amount_out, 0)
            )
            if is_final:
                self._pay(hop.token_in, hop.pool, hop.amount_in)
                self.chain.call(hop.pool, "swap", amount0_out, amount1_out, self.address, b"")
            else:
                self.chain.call(hop.pool, "swap", amount0_out, amount1_out, self.address, payload)
        elif hop.dex_type == DexType.DELTA_CALLBACK:
            price_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1
            self.chain.call(
                hop.pool, "swap", self.address, zero_for_one, hop.amount_in, price_limit, payload
            )
        else:
            raise _callback_error(
                ErrorCode.EXEC_INVALID_ROUTE,
                f"Unsupported dex type {hop.dex_type!r}",
                hop=index,
            )

    def _pay(self, token: str, pool: str, amount: int) -> None:
        if amount:
            self.chain.transfer_token(token, pool, amount)

    # =========================================================================
    # CALLBACK ENTRY
    # =========================================================================

    def fallback(self, calldata: bytes) -> None:
        """Entry for pool callbacks; dispatches on the 4-byte selector."""
        kind = SELECTOR_KINDS.get(bytes(calldata[:4])) if len(calldata) >= 4 else None
        if kind is None:
            raise _callback_error(
                ErrorCode.CALLBACK_UNKNOWN_SELECTOR,
                "Unknown callback selector",
                selector="0x" + bytes(calldata[:4]).hex(),
                caller=self.msg_sender,
            )

        body = bytes(calldata[4:])
        try:
            if kind == CallbackKind.UNISWAP_V2_CALL:
                sender, amount0, amount1, data = decode_args(V2_CALL_ARG_TYPES, body)
            else:
                amount0_delta, amount1_delta, data = decode_args(V3_SWAP_CALLBACK_ARG_TYPES, body)
        except ValidationError as e:
            raise _callback_error(ErrorCode.CALLBACK_MALFORMED, e.message, kind=kind.value)

        if kind == CallbackKind.UNISWAP_V2_CALL:
            self._on_push_callback(sender, amount0, amount1, data)
        else:
            self._on_delta_callback(amount0_delta, amount1_delta, data)

    def _on_push_callback(self, sender: str, amount0: int, amount1: int, data: bytes) -> None:
        index, hop = self._resume(CallbackKind.UNISWAP_V2_CALL, data, initiator=sender)
        self._pay(hop.token_in, hop.pool, hop.amount_in)

    def _on_delta_callback(self, amount0_delta: int, amount1_delta: int, data: bytes) -> None:
        index, hop = self._resume(CallbackKind.UNISWAP_V3_SWAP_CALLBACK, data)
        owed = max(positive_part(amount0_delta), positive_part(amount1_delta))
        if owed > hop.amount_in:
            raise _callback_error(
                ErrorCode.CALLBACK_OVERPAYMENT,
                f"Pool requested {owed}, quoted input is {hop.amount_in}",
                hop=index,
                pool=hop.pool,
            )
        self._pay(hop.token_in, hop.pool, owed)

    def _resume(
        self,
        kind: CallbackKind,
        data: bytes,
        initiator: Optional[str] = None,
    ) -> tuple[int, Hop]:
        """
        Verify a callback and run everything after its hop.

        `initiator` is the swap sender reported by push-family pools; it must
        be this router.

        Returns the (index, hop) the caller must now pay for.
        """
        caller = self.msg_sender
        if not self._guard.entered or self._pending_route_digest is None or self._context is None:
            raise _callback_error(
                ErrorCode.CALLBACK_NO_EXECUTION,
                "Callback outside of a route execution",
                caller=caller,
            )

        try:
            index, blob = decode_continuation(data)
        except ValidationError as e:
            raise _callback_error(ErrorCode.CALLBACK_MALFORMED, e.message, caller=caller)

        if route_digest(blob) != self._pending_route_digest:
            raise _callback_error(
                ErrorCode.CALLBACK_ROUTE_MISMATCH,
                "Callback route does not match the executing route",
                caller=caller,
            )

        # Digest matched, so the blob is the one this router encoded
        hops = decode_route(blob)
        if index >= len(hops):
            raise _callback_error(
                ErrorCode.CALLBACK_HOP_MISMATCH,
                f"Hop index {index} outside route",
                hop=index,
                hops=len(hops),
            )

        hop = hops[index]
        if caller != hop.pool:
            raise _callback_error(
                ErrorCode.CALLBACK_UNEXPECTED_CALLER,
                "Callback caller is not the pending hop's pool",
                caller=caller,
                expected=hop.pool,
                hop=index,
            )
        if CALLBACK_DEX_TYPE[kind] != hop.dex_type:
            raise _callback_error(
                ErrorCode.CALLBACK_KIND_MISMATCH,
                f"{kind.value} callback for a {hop.dex_type.name} hop",
                hop=index,
            )
        if index != self._context.current_hop:
            raise _callback_error(
                ErrorCode.CALLBACK_HOP_MISMATCH,
                f"Callback for hop {index}, executing hop {self._context.current_hop}",
                hop=index,
                current_hop=self._context.current_hop,
            )
        if initiator is not None and checksum(initiator) != self.address:
            raise _callback_error(
                ErrorCode.CALLBACK_UNEXPECTED_CALLER,
                "Flash swap was not initiated by this router",
                sender=initiator,
            )

        if index + 1 < len(hops):
            self._context.advance(index + 1)
            self._execute_hop(index + 1, hops, blob)
        return index, hop
