"""
dex/metadata.py - Per-hop metadata byte codec.

Layout of the one-byte metadata value:

  bit 7     direction flag (1 = token0 -> token1, "zeroForOne")
  bits 0-6  DEX-specific payload, ignored by the generic executor

The most significant bit alone decides direction:
  0x00..0x7F -> False
  0x80..0xFF -> True
"""

from dataclasses import dataclass

from core.constants import DEX_PAYLOAD_MASK, DIRECTION_FLAG_MASK, MAX_UINT8
from core.exceptions import ErrorCode, ValidationError


@dataclass(frozen=True)
class DexMetadata:
    """Decoded metadata byte."""
    direction: bool
    payload: int


def _require_byte(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_UINT8:
        raise ValidationError(
            f"Metadata must be a single byte, got {value!r}",
            details={"value": repr(value)},
            code=ErrorCode.METADATA_OUT_OF_RANGE,
        )
    return value


def decode_direction(value: int) -> bool:
    """Swap direction flag of a metadata byte."""
    return (_require_byte(value) & DIRECTION_FLAG_MASK) != 0


def decode_metadata(value: int) -> DexMetadata:
    """Split a metadata byte into direction flag and payload bits."""
    value = _require_byte(value)
    return DexMetadata(
        direction=(value & DIRECTION_FLAG_MASK) != 0,
        payload=value & DEX_PAYLOAD_MASK,
    )


def encode_metadata(direction: bool, payload: int = 0) -> int:
    """Inverse of decode_metadata."""
    if isinstance(payload, bool) or not isinstance(payload, int) or not 0 <= payload <= DEX_PAYLOAD_MASK:
        raise ValidationError(
            f"Metadata payload must fit in 7 bits, got {payload!r}",
            details={"payload": repr(payload)},
            code=ErrorCode.METADATA_OUT_OF_RANGE,
        )
    return (DIRECTION_FLAG_MASK if direction else 0) | payload
