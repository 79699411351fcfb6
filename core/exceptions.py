"""
core/exceptions.py - Typed exceptions with error codes.

Every revert in the engine is a ReflexError carrying a machine-readable
ErrorCode. The ledger rolls back state when one propagates out of a
transaction or a try_call.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Canonical error codes."""

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AMOUNT_OUT_OF_RANGE = "AMOUNT_OUT_OF_RANGE"
    METADATA_OUT_OF_RANGE = "METADATA_OUT_OF_RANGE"
    INVALID_POOL_ID = "INVALID_POOL_ID"

    # Access control / configuration
    ACCESS_DENIED = "ACCESS_DENIED"
    ZERO_ADDRESS = "ZERO_ADDRESS"
    QUOTER_NOT_SET = "QUOTER_NOT_SET"

    # Quoting
    QUOTE_REVERT = "QUOTE_REVERT"
    QUOTE_MALFORMED = "QUOTE_MALFORMED"

    # Execution
    EXEC_INVALID_ROUTE = "EXEC_INVALID_ROUTE"
    EXEC_INVALID_TRANSITION = "EXEC_INVALID_TRANSITION"
    CALLBACK_UNKNOWN_SELECTOR = "CALLBACK_UNKNOWN_SELECTOR"
    CALLBACK_NO_EXECUTION = "CALLBACK_NO_EXECUTION"
    CALLBACK_ROUTE_MISMATCH = "CALLBACK_ROUTE_MISMATCH"
    CALLBACK_HOP_MISMATCH = "CALLBACK_HOP_MISMATCH"
    CALLBACK_UNEXPECTED_CALLER = "CALLBACK_UNEXPECTED_CALLER"
    CALLBACK_KIND_MISMATCH = "CALLBACK_KIND_MISMATCH"
    CALLBACK_OVERPAYMENT = "CALLBACK_OVERPAYMENT"
    CALLBACK_MALFORMED = "CALLBACK_MALFORMED"

    # Ledger / transfers
    TRANSFER_FAILED = "TRANSFER_FAILED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"

    # Pools
    POOL_INSUFFICIENT_LIQUIDITY = "POOL_INSUFFICIENT_LIQUIDITY"
    POOL_K_INVARIANT = "POOL_K_INVARIANT"
    POOL_UNPAID = "POOL_UNPAID"
    POOL_INVALID_PRICE_LIMIT = "POOL_INVALID_PRICE_LIMIT"
    POOL_UNSUPPORTED_SWAP = "POOL_UNSUPPORTED_SWAP"

    # Share table
    SHARES_LENGTH_MISMATCH = "SHARES_LENGTH_MISMATCH"
    SHARES_EMPTY = "SHARES_EMPTY"
    SHARES_TOO_MANY = "SHARES_TOO_MANY"
    SHARES_ZERO_ADDRESS = "SHARES_ZERO_ADDRESS"
    SHARES_ZERO_WEIGHT = "SHARES_ZERO_WEIGHT"
    SHARES_DUPLICATE = "SHARES_DUPLICATE"
    SHARES_INVALID_TOTAL = "SHARES_INVALID_TOTAL"

    # Infrastructure
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"

    UNKNOWN = "UNKNOWN"


class ReflexError(Exception):
    """Base exception. Raising one is a revert."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and CLI output."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ReflexError):
    """Malformed input value."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(code, message, details)


class AccessDeniedError(ReflexError):
    """Caller is not the admin identity."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.ACCESS_DENIED, message, details)


class ConfigError(ReflexError):
    """Invalid configuration action (unset quoter, zero address...)."""
    pass


class QuoteError(ReflexError):
    """Quoter failed or returned an unusable quote."""
    pass


class ExecutionError(ReflexError):
    """Route execution, callback or transfer failure."""
    pass


class SplitError(ReflexError):
    """Share table violation."""
    pass


class InfraError(ReflexError):
    """Infrastructure-related errors (RPC, timeouts)."""
    pass
