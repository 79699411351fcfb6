"""
chains/providers.py - JSON-RPC provider with failover.

Used by the off-chain quoter adapter to reach a deployed quoter contract.

Provides:
- Multiple endpoint failover
- Request timeout handling
- Latency tracking
"""

import os
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx
from dotenv import load_dotenv

from core.exceptions import ErrorCode, InfraError
from core.logging import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

_PLACEHOLDER = re.compile(r"\$\{([A-Z0-9_]+)\}")


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


def resolve_rpc_urls(urls: list[str]) -> list[str]:
    """
    Substitute ${VAR} placeholders from the environment.

    URLs whose placeholders are unset are dropped.
    """
    resolved = []
    for url in urls:
        missing = [name for name in _PLACEHOLDER.findall(url) if not os.getenv(name)]
        if missing:
            logger.debug(
                "Skipping RPC URL with unset placeholders",
                extra={"context": {"missing": missing}},
            )
            continue
        resolved.append(_PLACEHOLDER.sub(lambda m: os.environ[m.group(1)], url))
    return resolved


class RPCProvider:
    """
    Blocking RPC provider with failover.

    Tries endpoints in order until one succeeds and tracks statistics per
    endpoint.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_urls: list[str],
        timeout_seconds: int = 10,
        client: httpx.Client | None = None,
    ):
        self.chain_id = chain_id
        self.timeout_seconds = timeout_seconds
        self.rpc_urls = resolve_rpc_urls(rpc_urls)
        self._client = client
        self._request_id = 0

        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def call(self, method: str, params: list | None = None) -> RPCResponse:
        """
        Make an RPC call with failover.

        Raises:
            InfraError: If all endpoints fail
        """
        if not self.rpc_urls:
            raise InfraError(
                ErrorCode.INFRA_RPC_ERROR,
                "No RPC endpoints configured",
                details={"chain_id": self.chain_id},
            )

        client = self._get_client()
        last_error: Exception | None = None

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1

            payload = {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._next_request_id(),
            }

            start_ms = int(time.time() * 1000)

            try:
                resp = client.post(url, json=payload)
                latency_ms = int(time.time() * 1000) - start_ms
                result = resp.json()

                if "error" in result:
                    error_msg = result["error"].get("message", str(result["error"]))
                    stats.failed_requests += 1
                    stats.last_error = error_msg
                    last_error = InfraError(
                        ErrorCode.INFRA_RPC_ERROR,
                        f"RPC error: {error_msg}",
                        details={"url": url, "method": method},
                    )
                    logger.debug(f"RPC error from {url}: {error_msg}")
                    continue

                stats.successful_requests += 1
                stats.total_latency_ms += latency_ms

                return RPCResponse(
                    result=result.get("result"),
                    latency_ms=latency_ms,
                    endpoint_used=url,
                )

            except httpx.TimeoutException as e:
                latency_ms = int(time.time() * 1000) - start_ms
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_error = e
                logger.debug(f"RPC timeout for {url}: {latency_ms}ms")
                continue

            except (httpx.HTTPError, ValueError) as e:
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_error = e
                logger.debug(f"RPC failed for {url}: {e}")
                continue

        code = (
            ErrorCode.INFRA_TIMEOUT
            if isinstance(last_error, httpx.TimeoutException)
            else ErrorCode.INFRA_RPC_ERROR
        )
        raise InfraError(
            code,
            f"All RPC endpoints failed for chain {self.chain_id}",
            details={
                "chain_id": self.chain_id,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": str(last_error),
            },
        )

    def get_chain_id(self) -> int:
        """Get chain ID from RPC."""
        response = self.call("eth_chainId")
        return int(response.result, 16)

    def eth_call(self, to: str, data: str, block: str = "latest") -> RPCResponse:
        """
        Make eth_call.

        Args:
            to: Contract address
            data: 0x-prefixed encoded call data
            block: Block number (hex) or "latest"
        """
        return self.call("eth_call", [{"to": to, "data": data}, block])

    def get_stats_summary(self) -> dict:
        """Get statistics summary for all endpoints."""
        return {
            url: {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }
