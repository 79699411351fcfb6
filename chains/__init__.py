"""
chains/ - Chain interaction layer.

Modules:
- ledger: deterministic in-process chain (contracts, balances, events, rollback)
- providers: JSON-RPC provider management with failover
"""

from chains.ledger import (
    CallFrame,
    Chain,
    Contract,
    Erc20Token,
    EventLog,
    LedgerSnapshot,
)
from chains.providers import (
    RPCProvider,
    RPCResponse,
    RPCStats,
    resolve_rpc_urls,
)

__all__ = [
    # Ledger
    "CallFrame",
    "Chain",
    "Contract",
    "Erc20Token",
    "EventLog",
    "LedgerSnapshot",
    # Providers
    "RPCProvider",
    "RPCResponse",
    "RPCStats",
    "resolve_rpc_urls",
]
