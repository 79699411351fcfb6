"""
dex/pools.py - Simulated AMM pools for the two callback families.

PushCallbackPool (Uniswap V2 style):
  swap(amount0_out, amount1_out, to, data)
  - sends outputs first, calls `to.uniswapV2Call(...)` when data is
    non-empty, then enforces the fee-adjusted constant-product invariant.

DeltaCallbackPool (Uniswap V3 / Algebra style, single full-range position):
  swap(recipient, zero_for_one, amount_specified, sqrt_price_limit_x96, data)
  - exact input only; sends the output, always calls
    `msg.sender.uniswapV3SwapCallback(amount0_delta, amount1_delta, data)`,
    then requires the input to have arrived.

Zero-amount swaps are accepted as no-ops on both families.
"""

from math import isqrt

from chains.ledger import Chain, Contract
from core.abi import checksum, encode_uniswap_v2_call, encode_uniswap_v3_swap_callback
from core.constants import (
    MAX_SQRT_RATIO,
    MIN_SQRT_RATIO,
    V2_FEE_DENOMINATOR,
    V3_FEE_DENOMINATOR,
)
from core.exceptions import ErrorCode, ExecutionError
from core.logging import get_logger
from core.math import require_uint, require_uint112

logger = get_logger(__name__)


def constant_product_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee: int,
    fee_denominator: int,
) -> int:
    """
    Output amount for a constant-product swap with an input fee.

    out = (in * (D - fee) * r_out) / (r_in * D + in * (D - fee))
    """
    if amount_in == 0:
        return 0
    if reserve_in <= 0 or reserve_out <= 0:
        raise ExecutionError(
            ErrorCode.POOL_INSUFFICIENT_LIQUIDITY,
            "Pool has zero reserves",
            details={"reserve_in": reserve_in, "reserve_out": reserve_out},
        )
    amount_in_with_fee = amount_in * (fee_denominator - fee)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * fee_denominator + amount_in_with_fee
    return numerator // denominator


class PushCallbackPool(Contract):
    """Uniswap V2 style pair with flash-swap callback."""

    def __init__(
        self,
        chain: Chain,
        address: str,
        token0: str,
        token1: str,
        fee_bps: int = 30,
    ):
        super().__init__(chain, address)
        self.token0 = checksum(token0)
        self.token1 = checksum(token1)
        self.fee_bps = fee_bps
        self.reserve0 = 0
        self.reserve1 = 0

    def get_reserves(self) -> tuple[int, int]:
        return self.reserve0, self.reserve1

    def sync(self) -> None:
        """Match reserves to balances (liquidity seeding)."""
        self.reserve0 = require_uint112(
            self.chain.token_balance(self.token0, self.address), "reserve0"
        )
        self.reserve1 = require_uint112(
            self.chain.token_balance(self.token1, self.address), "reserve1"
        )

    def get_amount_out(self, amount_in: int, zero_for_one: bool) -> int:
        if zero_for_one:
            reserve_in, reserve_out = self.reserve0, self.reserve1
        else:
            reserve_in, reserve_out = self.reserve1, self.reserve0
        return constant_product_out(
            amount_in, reserve_in, reserve_out, self.fee_bps, V2_FEE_DENOMINATOR
        )

    def swap(self, amount0_out: int, amount1_out: int, to: str, data: bytes = b"") -> None:
        require_uint(amount0_out, name="amount0_out")
        require_uint(amount1_out, name="amount1_out")
        sender = self.msg_sender
        to = checksum(to)
        reserve0, reserve1 = self.reserve0, self.reserve1

        if amount0_out >= reserve0 or amount1_out >= reserve1:
            raise ExecutionError(
                ErrorCode.POOL_INSUFFICIENT_LIQUIDITY,
                "Insufficient liquidity for requested output",
                details={
                    "pool": self.address,
                    "amount0_out": amount0_out,
                    "amount1_out": amount1_out,
                    "reserve0": reserve0,
                    "reserve1": reserve1,
                },
            )
        if to in (self.token0, self.token1):
            raise ExecutionError(
                ErrorCode.VALIDATION_ERROR,
                "Swap recipient cannot be a pool token",
                details={"pool": self.address, "to": to},
            )

        # Optimistic transfer
        if amount0_out:
            self.chain.transfer_token(self.token0, to, amount0_out)
        if amount1_out:
            self.chain.transfer_token(self.token1, to, amount1_out)
        if data:
            self.chain.raw_call(to, encode_uniswap_v2_call(sender, amount0_out, amount1_out, data))

        balance0 = self.chain.token_balance(self.token0, self.address)
        balance1 = self.chain.token_balance(self.token1, self.address)
        amount0_in = max(balance0 - (reserve0 - amount0_out), 0)
        amount1_in = max(balance1 - (reserve1 - amount1_out), 0)

        if (amount0_out or amount1_out) and not (amount0_in or amount1_in):
            raise ExecutionError(
                ErrorCode.POOL_UNPAID,
                "Insufficient input amount",
                details={"pool": self.address, "sender": sender},
            )

        adjusted0 = balance0 * V2_FEE_DENOMINATOR - amount0_in * self.fee_bps
        adjusted1 = balance1 * V2_FEE_DENOMINATOR - amount1_in * self.fee_bps
        if adjusted0 * adjusted1 < reserve0 * reserve1 * V2_FEE_DENOMINATOR ** 2:
            raise ExecutionError(
                ErrorCode.POOL_K_INVARIANT,
                "Constant-product invariant violated",
                details={
                    "pool": self.address,
                    "amount0_in": amount0_in,
                    "amount1_in": amount1_in,
                    "amount0_out": amount0_out,
                    "amount1_out": amount1_out,
                },
            )

        self.reserve0 = balance0
        self.reserve1 = balance1
        self.emit(
            "Swap",
            sender=sender,
            amount0_in=amount0_in,
            amount1_in=amount1_in,
            amount0_out=amount0_out,
            amount1_out=amount1_out,
            to=to,
        )


class DeltaCallbackPool(Contract):
    """Uniswap V3 / Algebra style pool with a single full-range position."""

    def __init__(
        self,
        chain: Chain,
        address: str,
        token0: str,
        token1: str,
        fee_pips: int = 3000,
    ):
        super().__init__(chain, address)
        self.token0 = checksum(token0)
        self.token1 = checksum(token1)
        self.fee_pips = fee_pips
        self.reserve0 = 0
        self.reserve1 = 0

    def sync(self) -> None:
        """Match virtual reserves to balances (liquidity seeding)."""
        self.reserve0 = self.chain.token_balance(self.token0, self.address)
        self.reserve1 = self.chain.token_balance(self.token1, self.address)

    def sqrt_price_x96(self) -> int:
        if self.reserve0 == 0 or self.reserve1 == 0:
            raise ExecutionError(
                ErrorCode.POOL_INSUFFICIENT_LIQUIDITY,
                "Pool has zero reserves",
                details={"pool": self.address},
            )
        return isqrt((self.reserve1 << 192) // self.reserve0)

    def get_amount_out(self, amount_in: int, zero_for_one: bool) -> int:
        if zero_for_one:
            reserve_in, reserve_out = self.reserve0, self.reserve1
        else:
            reserve_in, reserve_out = self.reserve1, self.reserve0
        return constant_product_out(
            amount_in, reserve_in, reserve_out, self.fee_pips, V3_FEE_DENOMINATOR
        )

    def swap(
        self,
        recipient: str,
        zero_for_one: bool,
        amount_specified: int,
        sqrt_price_limit_x96: int,
        data: bytes = b"",
    ) -> tuple[int, int]:
        sender = self.msg_sender
        recipient = checksum(recipient)

        if amount_specified < 0:
            raise ExecutionError(
                ErrorCode.POOL_UNSUPPORTED_SWAP,
                "Exact-output swaps are not supported",
                details={"pool": self.address, "amount_specified": amount_specified},
            )

        current = self.sqrt_price_x96()
        if zero_for_one:
            limit_ok = MIN_SQRT_RATIO < sqrt_price_limit_x96 < current
        else:
            limit_ok = current < sqrt_price_limit_x96 < MAX_SQRT_RATIO
        if not limit_ok:
            raise ExecutionError(
                ErrorCode.POOL_INVALID_PRICE_LIMIT,
                "Price limit on the wrong side of the current price",
                details={
                    "pool": self.address,
                    "zero_for_one": zero_for_one,
                    "limit": sqrt_price_limit_x96,
                    "current": current,
                },
            )

        amount_in = amount_specified
        amount_out = self.get_amount_out(amount_in, zero_for_one)
        if zero_for_one:
            token_in, token_out = self.token0, self.token1
            amount0, amount1 = amount_in, -amount_out
        else:
            token_in, token_out = self.token1, self.token0
            amount0, amount1 = -amount_out, amount_in

        if amount_out:
            self.chain.transfer_token(token_out, recipient, amount_out)

        balance_before = self.chain.token_balance(token_in, self.address)
        self.chain.raw_call(sender, encode_uniswap_v3_swap_callback(amount0, amount1, data))
        if self.chain.token_balance(token_in, self.address) < balance_before + amount_in:
            raise ExecutionError(
                ErrorCode.POOL_UNPAID,
                "Swap callback did not pay the input amount",
                details={"pool": self.address, "owed": amount_in, "sender": sender},
            )

        if zero_for_one:
            self.reserve0 += amount_in
            self.reserve1 -= amount_out
        else:
            self.reserve1 += amount_in
            self.reserve0 -= amount_out

        self.emit(
            "Swap",
            sender=sender,
            recipient=recipient,
            amount0=amount0,
            amount1=amount1,
            sqrt_price_x96=self.sqrt_price_x96(),
        )
        return amount0, amount1
