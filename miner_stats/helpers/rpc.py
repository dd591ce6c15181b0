"""Zcash-style node JSON-RPC client utilities."""

import operator

from typing import Any

import httpx

from miner_stats.helpers.rpc_models import (
    GetBlockCountRequest,
    GetBlockHashRequest,
    GetBlockRequest,
    JsonRpcRequest,
    JsonRpcResponse,
)


class RPCError(ValueError):
    """JSON-RPC error object or malformed envelope returned by the node."""


class RPCClient:
    """Node JSON-RPC client with batching support."""

    def __init__(self, rpc_url: str, timeout: float = 30.0) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Node JSON-RPC endpoint URL
            timeout: Default timeout for requests in seconds

        Raises:
            ValueError: If rpc_url is empty or None
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout

    async def _post(
        self, client: httpx.AsyncClient, payload: Any, timeout: float | None
    ) -> Any:
        response = await client.post(
            self.rpc_url, json=payload, timeout=timeout or self.timeout
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            msg = f"RPC response is not JSON: {e}"
            raise RPCError(msg) from e

    async def send(
        self,
        client: httpx.AsyncClient,
        request: JsonRpcRequest,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a prepared request model and return its ``result``.

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the response carries an error or no result
        """
        body = await self._post(client, request.model_dump(), timeout)
        if not isinstance(body, dict):
            msg = f"RPC {request.method} returned a non-object response"
            raise RPCError(msg)

        envelope = JsonRpcResponse.model_validate(body)
        if envelope.error is not None:
            msg = (
                f"RPC error {envelope.error.code} from {request.method}: "
                f"{envelope.error.message}"
            )
            raise RPCError(msg)
        if envelope.result is None:
            msg = f"RPC {request.method} returned no result"
            raise RPCError(msg)
        return envelope.result

    async def batch_call(
        self,
        client: httpx.AsyncClient,
        requests: list[tuple[str, list[Any]]],
        *,
        timeout: float | None = None,
    ) -> list[Any]:
        """Make multiple JSON-RPC calls in a single batch request.

        Args:
            client: HTTP client instance
            requests: List of (method, params) tuples
            timeout: Optional timeout override

        Returns:
            List of results in the same order as requests (None for entries
            that returned an error)

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the node does not answer with one entry per request
        """
        if not requests:
            return []

        batch_payload = [
            JsonRpcRequest(method=method, params=params, id=idx).model_dump()
            for idx, (method, params) in enumerate(requests)
        ]

        results = await self._post(client, batch_payload, timeout)
        if not isinstance(results, list) or len(results) != len(requests):
            msg = "RPC batch response does not match the request batch"
            raise RPCError(msg)

        # Sort by ID to match request order
        try:
            sorted_results = sorted(results, key=operator.itemgetter("id"))
        except (KeyError, TypeError) as e:
            msg = f"RPC batch response has malformed ids: {e}"
            raise RPCError(msg) from e

        return [r.get("result") for r in sorted_results]

    async def get_block_count(self, client: httpx.AsyncClient) -> int:
        """Get the height of the chain tip.

        Args:
            client: HTTP client instance

        Returns:
            Tip height
        """
        result = await self.send(client, GetBlockCountRequest(id=1))
        return int(result)

    async def get_block_hash(self, client: httpx.AsyncClient, height: int) -> str:
        """Get the canonical block hash at a height.

        Args:
            client: HTTP client instance
            height: Block height

        Returns:
            Block hash as a hex string
        """
        result = await self.send(client, GetBlockHashRequest(params=[height], id=1))
        if not isinstance(result, str):
            msg = f"getblockhash returned {type(result).__name__}, expected str"
            raise RPCError(msg)
        return result

    async def get_block(
        self, client: httpx.AsyncClient, block_hash: str, verbosity: int = 2
    ) -> dict[str, Any]:
        """Get a block by hash.

        Args:
            client: HTTP client instance
            block_hash: Block hash
            verbosity: 2 returns decoded transactions

        Returns:
            Block JSON object
        """
        result = await self.send(
            client, GetBlockRequest(params=[block_hash, verbosity], id=1)
        )
        if not isinstance(result, dict):
            msg = f"getblock returned {type(result).__name__}, expected object"
            raise RPCError(msg)
        return result


__all__ = [
    "RPCClient",
    "RPCError",
]
