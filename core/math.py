"""
core/math.py - Integer math for on-ledger amounts.

CRITICAL: No float, no Decimal. Amounts are unsigned ints in the token's
smallest unit and every division floors.
"""

from core.constants import BPS_DENOMINATOR, MAX_UINT112, MAX_UINT256
from core.exceptions import ErrorCode, ValidationError


def require_uint(value: int, max_value: int = MAX_UINT256, name: str = "value") -> int:
    """
    Check value is an int in [0, max_value].

    bool is rejected: True is an int in Python but never an amount.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{name} must be an integer",
            details={"name": name, "value": repr(value)},
            code=ErrorCode.AMOUNT_OUT_OF_RANGE,
        )
    if value < 0 or value > max_value:
        raise ValidationError(
            f"{name} out of range: {value}",
            details={"name": name, "value": value, "max": max_value},
            code=ErrorCode.AMOUNT_OUT_OF_RANGE,
        )
    return value


def require_uint112(value: int, name: str = "value") -> int:
    """Check value fits in uint112 (AMM reserve scale)."""
    return require_uint(value, MAX_UINT112, name)


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with unbounded intermediate precision."""
    if denominator == 0:
        raise ValidationError("Division by zero", details={"a": a, "b": b})
    return (a * b) // denominator


def bps_share(amount: int, weight_bps: int) -> int:
    """
    Share of amount for a weight in basis points.

    Example: bps_share(999, 2500) -> 249
    """
    return mul_div_floor(amount, weight_bps, BPS_DENOMINATOR)


def positive_part(value: int) -> int:
    """max(value, 0) - realized profit is never reported negative."""
    return value if value > 0 else 0
