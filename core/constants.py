"""
core/constants.py - Enums, defaults, and constants.

Only truly constant values here. Config values go to config/*.yaml
"""

from enum import Enum, IntEnum
from typing import Final


# =============================================================================
# PROTOCOL TYPES
# =============================================================================

class DexType(IntEnum):
    """
    Pool callback families understood by the executor.

    Values are the uint8 tags carried in a quoted route.
    """
    PUSH_CALLBACK = 1   # Uniswap V2 style: swap(amount0Out, amount1Out, to, data)
    DELTA_CALLBACK = 2  # Uniswap V3 / Algebra style: swap(recipient, zeroForOne, ...)


class CallbackKind(str, Enum):
    """Callback conventions accepted by the router fallback."""
    UNISWAP_V2_CALL = "UNISWAP_V2_CALL"
    UNISWAP_V3_SWAP_CALLBACK = "UNISWAP_V3_SWAP_CALLBACK"


# Callback family -> pool family it must come from
CALLBACK_DEX_TYPE: Final[dict[CallbackKind, DexType]] = {
    CallbackKind.UNISWAP_V2_CALL: DexType.PUSH_CALLBACK,
    CallbackKind.UNISWAP_V3_SWAP_CALLBACK: DexType.DELTA_CALLBACK,
}


# =============================================================================
# ABI SIGNATURES (selectors are derived in core/abi.py)
# =============================================================================

SIG_UNISWAP_V2_CALL: Final[str] = "uniswapV2Call(address,uint256,uint256,bytes)"
SIG_UNISWAP_V3_SWAP_CALLBACK: Final[str] = "uniswapV3SwapCallback(int256,int256,bytes)"
SIG_GET_QUOTE: Final[str] = "getQuote(address,uint8,uint256)"

# getQuote return layout:
# (uint256 profit, (address[] pools, uint8[] dexType, uint8[] dexMeta,
#  uint112 amount, address[] tokens) route, uint256[] amountsOut,
#  uint256 initialHopIndex)
GET_QUOTE_RETURN_TYPES: Final[list[str]] = [
    "uint256",
    "(address[],uint8[],uint8[],uint112,address[])",
    "uint256[]",
    "uint256",
]


# =============================================================================
# NUMERIC CONSTANTS
# =============================================================================

# Basis points
BPS_DENOMINATOR: Final[int] = 10_000

# Integer bounds
MAX_UINT8: Final[int] = 2**8 - 1
MAX_UINT112: Final[int] = 2**112 - 1
MAX_UINT256: Final[int] = 2**256 - 1

# Direction flag lives in the most significant bit of the metadata byte
DIRECTION_FLAG_MASK: Final[int] = 0x80
DEX_PAYLOAD_MASK: Final[int] = 0x7F

# Uniswap V3 TickMath bounds
MIN_SQRT_RATIO: Final[int] = 4295128739
MAX_SQRT_RATIO: Final[int] = 1461446703485210103287273052203988822378723970342

# Fee denominators used by the simulated pools
V2_FEE_DENOMINATOR: Final[int] = 10_000       # fee in bps
V3_FEE_DENOMINATOR: Final[int] = 1_000_000    # fee in hundredths of a bip

# Zero address (also used as the native currency marker)
ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"
NATIVE_TOKEN: Final[str] = ZERO_ADDRESS


# =============================================================================
# DEFAULTS (can be overridden in reflex.yaml)
# =============================================================================

# Share table
MAX_RECIPIENTS: Final[int] = 10

# Longest route the quote client accepts
DEFAULT_MAX_HOPS: Final[int] = 8

# Infrastructure
DEFAULT_RPC_TIMEOUT_SECONDS = 10
DEFAULT_CHAIN_ID = 1
