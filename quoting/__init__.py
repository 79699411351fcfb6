"""
quoting/ - Quote client and quoter adapters.

Modules:
- client: one-call quote client and route validation
- rpc_quoter: quoter proxy over JSON-RPC eth_call
- static: pre-computed quote table (scenarios, tests)
"""

from quoting.client import QuoteClient, build_route, coerce_quote
from quoting.rpc_quoter import RpcQuoter, decode_get_quote_response, encode_get_quote
from quoting.static import StaticQuoter, quote_from_pools

__all__ = [
    "QuoteClient",
    "build_route",
    "coerce_quote",
    "RpcQuoter",
    "decode_get_quote_response",
    "encode_get_quote",
    "StaticQuoter",
    "quote_from_pools",
]
