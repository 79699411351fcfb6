"""
quoting/rpc_quoter.py - Quoter backed by a deployed quoter contract.

Forwards getQuote(address,uint8,uint256) to a node over JSON-RPC
(eth_call) and decodes the ABI response. Deployed on the in-process chain
like any other quoter so the router can be pointed at it with set_quoter().
"""

from chains.ledger import Chain, Contract
from chains.providers import RPCProvider
from core.abi import GET_QUOTE_SELECTOR, checksum, decode_args, encode_call
from core.constants import GET_QUOTE_RETURN_TYPES
from core.exceptions import ErrorCode, QuoteError, ValidationError
from core.logging import get_logger
from core.models import QuotedRoute, QuoteResult

logger = get_logger(__name__)


def encode_get_quote(pool: str, asset_id: int, amount_in: int) -> str:
    """0x-prefixed calldata for getQuote."""
    calldata = encode_call(
        GET_QUOTE_SELECTOR,
        ["address", "uint8", "uint256"],
        [checksum(pool), asset_id, amount_in],
    )
    return "0x" + calldata.hex()


def decode_get_quote_response(hex_result: str | None) -> QuoteResult:
    """
    Decode a getQuote return value.

    Raises:
        QuoteError: empty or undecodable response
    """
    if not hex_result or hex_result == "0x":
        raise QuoteError(ErrorCode.QUOTE_REVERT, "Empty getQuote response")

    data = hex_result[2:] if hex_result.startswith("0x") else hex_result
    try:
        raw = bytes.fromhex(data)
        profit, route, amounts_out, initial_hop_index = decode_args(GET_QUOTE_RETURN_TYPES, raw)
    except (ValueError, ValidationError) as e:
        raise QuoteError(
            ErrorCode.QUOTE_REVERT,
            f"Undecodable getQuote response: {e}",
            details={"data_length": len(data), "raw": hex_result[:100]},
        )

    pools, dex_types, dex_meta, amount, tokens = route
    return QuoteResult(
        profit=profit,
        route=QuotedRoute(
            pools=[checksum(p) for p in pools],
            dex_types=list(dex_types),
            dex_meta=list(dex_meta),
            amount=amount,
            tokens=[checksum(t) for t in tokens],
        ),
        hop_amounts=list(amounts_out),
        initial_hop_index=initial_hop_index,
    )


class RpcQuoter(Contract):
    """
    Proxy for a quoter contract living on a real node.

    Usage:
        provider = RPCProvider(42161, ["https://arb1.arbitrum.io/rpc"])
        quoter = chain.deploy(RpcQuoter, provider, "0xQuoter...", deployer=admin)
        chain.transact(admin, router, "set_quoter", quoter.address)
    """

    NON_STATE = Contract.NON_STATE | {"provider"}

    def __init__(
        self,
        chain: Chain,
        address: str,
        provider: RPCProvider,
        quoter_address: str,
        block: str = "latest",
    ):
        super().__init__(chain, address)
        self.provider = provider
        self.quoter_address = checksum(quoter_address)
        self.block = block

    def get_quote(self, pool: str, asset_id: int, amount_in: int) -> QuoteResult:
        call_data = encode_get_quote(pool, asset_id, amount_in)
        response = self.provider.eth_call(
            to=self.quoter_address,
            data=call_data,
            block=self.block,
        )
        if response.result is None:
            raise QuoteError(
                ErrorCode.QUOTE_REVERT,
                "getQuote returned null result",
                details={
                    "quoter": self.quoter_address,
                    "block": self.block,
                    "call_data_prefix": call_data[:10],
                },
            )

        quote = decode_get_quote_response(response.result)
        logger.debug(
            f"RPC quote: {len(quote.route.pools)} hops, profit {quote.profit} "
            f"(latency={response.latency_ms}ms)",
            extra={"context": {"endpoint": response.endpoint_used, "pool": pool}},
        )
        return quote
