"""
core - Core utilities and models for Reflex.

This package contains:
- models.py: Data models (Hop, Route, QuoteResult, BackrunResult, SplitResult)
- constants.py: Enums and constants
- exceptions.py: Typed exceptions with error codes
- math.py: Integer math (no float)
- abi.py: Selectors, calldata and route continuation encoding
- logging.py: Structured JSON logging
"""

from core.constants import (
    BPS_DENOMINATOR,
    MAX_RECIPIENTS,
    NATIVE_TOKEN,
    ZERO_ADDRESS,
    CallbackKind,
    DexType,
)
from core.exceptions import (
    AccessDeniedError,
    ConfigError,
    ErrorCode,
    ExecutionError,
    InfraError,
    QuoteError,
    ReflexError,
    SplitError,
    ValidationError,
)
from core.models import (
    BackrunResult,
    Hop,
    QuotedRoute,
    QuoteResult,
    Route,
    SplitResult,
)

__all__ = [
    # Constants
    "BPS_DENOMINATOR",
    "MAX_RECIPIENTS",
    "NATIVE_TOKEN",
    "ZERO_ADDRESS",
    "CallbackKind",
    "DexType",
    # Exceptions
    "AccessDeniedError",
    "ConfigError",
    "ErrorCode",
    "ExecutionError",
    "InfraError",
    "QuoteError",
    "ReflexError",
    "SplitError",
    "ValidationError",
    # Models
    "BackrunResult",
    "Hop",
    "QuotedRoute",
    "QuoteResult",
    "Route",
    "SplitResult",
]
