"""
core/abi.py - ABI encoding helpers.

Calldata exchanged between the router, pools and quoters is real ABI:
4-byte selector + eth_abi encoded arguments. Callback payloads carry the
execution continuation (pending hop index + encoded route).
"""

from typing import Any, Sequence, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import keccak, to_checksum_address

from core.constants import (
    SIG_GET_QUOTE,
    SIG_UNISWAP_V2_CALL,
    SIG_UNISWAP_V3_SWAP_CALLBACK,
    ZERO_ADDRESS,
    DexType,
)
from core.exceptions import ErrorCode, ValidationError
from core.models import Hop


def selector(signature: str) -> bytes:
    """4-byte function selector."""
    return keccak(text=signature)[:4]


UNISWAP_V2_CALL_SELECTOR = selector(SIG_UNISWAP_V2_CALL)                     # 0x10d1e85c
UNISWAP_V3_SWAP_CALLBACK_SELECTOR = selector(SIG_UNISWAP_V3_SWAP_CALLBACK)   # 0xfa461e33
GET_QUOTE_SELECTOR = selector(SIG_GET_QUOTE)

# One tuple per hop: pool, dexType, dexMeta, tokenIn, tokenOut, amountIn, amountOut
ROUTE_ABI_TYPE = "(address,uint8,uint8,address,address,uint256,uint256)[]"
CONTINUATION_ABI_TYPES = ["uint256", "bytes"]


# =============================================================================
# ADDRESSES
# =============================================================================

def checksum(address: str) -> str:
    """Checksummed form of a 20-byte hex address."""
    try:
        return to_checksum_address(address)
    except (ValueError, TypeError) as e:
        raise ValidationError(
            f"Invalid address: {address!r}",
            details={"address": repr(address), "error": str(e)},
        )


def is_zero_address(address: str) -> bool:
    return address.lower() == ZERO_ADDRESS


def pool_id_to_address(pool_id: Union[str, bytes, int]) -> str:
    """
    Extract the pool address from a 32-byte trigger pool id.

    The pool address is the low 160 bits of the id.
    """
    if isinstance(pool_id, bytes):
        value = int.from_bytes(pool_id, "big")
    elif isinstance(pool_id, str):
        try:
            value = int(pool_id, 16)
        except ValueError:
            raise ValidationError(
                f"Invalid pool id: {pool_id!r}",
                details={"pool_id": pool_id},
                code=ErrorCode.INVALID_POOL_ID,
            )
    elif isinstance(pool_id, int) and not isinstance(pool_id, bool):
        value = pool_id
    else:
        raise ValidationError(
            f"Invalid pool id type: {type(pool_id).__name__}",
            code=ErrorCode.INVALID_POOL_ID,
        )

    if value < 0 or value >= 2**256:
        raise ValidationError(
            "Pool id does not fit in 32 bytes",
            details={"pool_id": hex(value)},
            code=ErrorCode.INVALID_POOL_ID,
        )

    address_int = value & (2**160 - 1)
    return to_checksum_address("0x" + format(address_int, "040x"))


def address_to_pool_id(address: str) -> str:
    """Left-pad a pool address into a 32-byte hex pool id."""
    return "0x" + checksum(address)[2:].lower().zfill(64)


# =============================================================================
# CALLDATA
# =============================================================================

def encode_call(function_selector: bytes, types: Sequence[str], args: Sequence[Any]) -> bytes:
    """Selector + ABI-encoded arguments."""
    return function_selector + encode(list(types), list(args))


def split_calldata(calldata: bytes) -> tuple[bytes, bytes]:
    """Split calldata into (selector, body)."""
    if len(calldata) < 4:
        raise ValidationError(
            "Calldata shorter than a selector",
            details={"length": len(calldata)},
        )
    return calldata[:4], calldata[4:]


def decode_args(types: Sequence[str], body: bytes) -> tuple:
    """ABI-decode an argument body, mapping codec errors to ValidationError."""
    try:
        return decode(list(types), body)
    except (DecodingError, EncodingError, OverflowError) as e:
        raise ValidationError(
            f"ABI decode failed: {e}",
            details={"types": list(types), "length": len(body)},
        )


def encode_uniswap_v2_call(sender: str, amount0: int, amount1: int, data: bytes) -> bytes:
    return encode_call(
        UNISWAP_V2_CALL_SELECTOR,
        ["address", "uint256", "uint256", "bytes"],
        [sender, amount0, amount1, data],
    )


def encode_uniswap_v3_swap_callback(amount0_delta: int, amount1_delta: int, data: bytes) -> bytes:
    return encode_call(
        UNISWAP_V3_SWAP_CALLBACK_SELECTOR,
        ["int256", "int256", "bytes"],
        [amount0_delta, amount1_delta, data],
    )


# =============================================================================
# ROUTE CONTINUATION
# =============================================================================

def encode_route(hops: Sequence[Hop]) -> bytes:
    """Encode hops (in execution order) into a self-describing blob."""
    return encode(
        [ROUTE_ABI_TYPE],
        [[
            (
                hop.pool,
                int(hop.dex_type),
                hop.dex_meta,
                hop.token_in,
                hop.token_out,
                hop.amount_in,
                hop.amount_out,
            )
            for hop in hops
        ]],
    )


def decode_route(blob: bytes) -> tuple[Hop, ...]:
    """Inverse of encode_route."""
    (rows,) = decode_args([ROUTE_ABI_TYPE], blob)
    hops = []
    for pool, dex_type, dex_meta, token_in, token_out, amount_in, amount_out in rows:
        try:
            family = DexType(dex_type)
        except ValueError:
            raise ValidationError(
                f"Unknown dex type in route: {dex_type}",
                details={"dex_type": dex_type},
            )
        hops.append(Hop(
            pool=to_checksum_address(pool),
            dex_type=family,
            dex_meta=dex_meta,
            token_in=to_checksum_address(token_in),
            token_out=to_checksum_address(token_out),
            amount_in=amount_in,
            amount_out=amount_out,
        ))
    return tuple(hops)


def route_digest(blob: bytes) -> bytes:
    """Commitment to an encoded route."""
    return keccak(blob)


def encode_continuation(hop_index: int, route_blob: bytes) -> bytes:
    """Callback payload: pending hop index + encoded route."""
    return encode(CONTINUATION_ABI_TYPES, [hop_index, route_blob])


def decode_continuation(data: bytes) -> tuple[int, bytes]:
    """Inverse of encode_continuation."""
    hop_index, route_blob = decode_args(CONTINUATION_ABI_TYPES, data)
    return hop_index, route_blob
