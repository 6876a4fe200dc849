"""JSON-RPC provider.

Adapts a plain JSON-RPC 2.0 node (for example a local development node
with unlocked accounts) to the EIP-1193 surface. The node holds the keys
and signs ``eth_sendTransaction`` itself. A node has no push channel, so
this provider never emits account or chain events on its own.
"""

import logging
from itertools import count
from typing import Any, Optional

import httpx

from walletsdk.errors import ProviderRpcError
from walletsdk.providers.base import InjectedProvider

logger = logging.getLogger(__name__)

# JSON-RPC "Internal error"
INTERNAL_ERROR_CODE = -32603


class JsonRpcProvider(InjectedProvider):
    """EIP-1193 adapter over HTTP JSON-RPC."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        name: str = "jsonrpc",
    ):
        """Initialize provider.

        Args:
            rpc_url: Node endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            name: Provider name for logs
        """
        super().__init__()
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._transport = transport
        self._name = name
        self._ids = count(1)

    @property
    def name(self) -> str:
        return self._name

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params or []),
            "id": next(self._ids),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"JSON-RPC {method} to {self.rpc_url} failed: {e}")
            raise ProviderRpcError(INTERNAL_ERROR_CODE, f"RPC transport error: {e}") from e
        except ValueError as e:
            raise ProviderRpcError(INTERNAL_ERROR_CODE, f"Invalid RPC response: {e}") from e

        if "error" in data and data["error"]:
            error = data["error"]
            logger.warning(f"JSON-RPC {method} returned error: {error}")
            raise ProviderRpcError(
                error.get("code", INTERNAL_ERROR_CODE),
                error.get("message", "RPC error"),
                error.get("data"),
            )

        return data.get("result")
