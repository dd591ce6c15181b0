"""Chain reader: the node RPC calls the scanner needs, with retries."""

from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager

from typing import Any

import httpx

from miner_stats.data.blocks.models import CachedBlock, CoinbaseOutput
from miner_stats.helpers.constants import (
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RPC_BATCH_SIZE,
)
from miner_stats.helpers.errors import FetchError
from miner_stats.helpers.http import retry_with_backoff
from miner_stats.helpers.logging import get_logger
from miner_stats.helpers.rpc import RPCClient
from miner_stats.helpers.rpc_models import BlockResult

logger = get_logger(__name__)

# RPCError and pydantic's ValidationError are both ValueErrors
_FETCH_FAILURES = (httpx.HTTPError, ValueError, TypeError)


@contextmanager
def _fetch_errors(method: str, height: int | None = None) -> Iterator[None]:
    """Translate transport, RPC and decoding failures into FetchError."""
    try:
        yield
    except FetchError:
        raise
    except _FETCH_FAILURES as e:
        raise FetchError(method, str(e) or type(e).__name__, height=height) from e


class ChainReader:
    """Stateless adapter over the node's JSON-RPC interface.

    Every public call is retried with exponential backoff on FetchError; once
    the attempts are exhausted the last FetchError propagates.
    """

    def __init__(
        self,
        rpc_client: RPCClient,
        http_client: httpx.AsyncClient,
        *,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        retry_max_delay: float = RETRY_MAX_DELAY,
        rpc_batch_size: int = RPC_BATCH_SIZE,
    ) -> None:
        """Initialize the reader.

        Args:
            rpc_client: Node JSON-RPC client
            http_client: Shared HTTP client (owned by the caller)
            max_retries: Attempts per call before giving up
            retry_base_delay: Initial backoff delay in seconds
            retry_max_delay: Backoff delay cap in seconds
            rpc_batch_size: Hashes requested per JSON-RPC batch
        """
        self.rpc_client = rpc_client
        self.http_client = http_client
        self.rpc_batch_size = rpc_batch_size
        self._retry = retry_with_backoff(
            max_retries,
            retry_base_delay,
            retry_max_delay,
            retry_on=(FetchError,),
        )

    async def _with_retry[T](
        self, func: Callable[..., Awaitable[T]], *args: Any
    ) -> T:
        return await self._retry(func)(*args)

    # ------------------------------------------------------------------
    # Single attempts
    # ------------------------------------------------------------------

    async def _tip_height(self) -> int:
        with _fetch_errors("getblockcount"):
            return await self.rpc_client.get_block_count(self.http_client)

    async def _hash_at(self, height: int) -> str:
        with _fetch_errors("getblockhash", height):
            return await self.rpc_client.get_block_hash(self.http_client, height)

    async def _hashes_at(self, heights: Sequence[int]) -> dict[int, str]:
        requests: list[tuple[str, list[Any]]] = [
            ("getblockhash", [height]) for height in heights
        ]
        with _fetch_errors("getblockhash", heights[0]):
            results = await self.rpc_client.batch_call(self.http_client, requests)

        hashes: dict[int, str] = {}
        for height, result in zip(heights, results, strict=True):
            if not isinstance(result, str) or not result:
                raise FetchError("getblockhash", "missing hash in batch", height=height)
            hashes[height] = result
        return hashes

    async def _fetch_block(self, height: int) -> CachedBlock:
        block_hash = await self._hash_at(height)
        with _fetch_errors("getblock", height):
            raw = await self.rpc_client.get_block(self.http_client, block_hash, 2)
            block = BlockResult.model_validate(raw)

        if block.hash != block_hash or block.height != height:
            # The tip moved between the two calls
            msg = f"block {block.hash} at {block.height} does not match {block_hash}"
            raise FetchError("getblock", msg, height=height)

        coinbase = block.coinbase
        if coinbase is None:
            msg = "block has no coinbase transaction"
            raise FetchError("getblock", msg, height=height)

        outputs = [
            CoinbaseOutput(
                value_zat=vout.value_zat,
                addresses=vout.script_pub_key.addresses or [],
            )
            for vout in coinbase.vout
        ]
        return CachedBlock(height=height, hash=block_hash, outputs=outputs)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def tip_height(self) -> int:
        """Current chain tip height (``getblockcount``)."""
        return await self._with_retry(self._tip_height)

    async def hash_at(self, height: int) -> str:
        """Canonical block hash at ``height`` (``getblockhash``)."""
        return await self._with_retry(self._hash_at, height)

    async def hashes_at(self, heights: Sequence[int]) -> dict[int, str]:
        """Canonical hashes for several heights using batched ``getblockhash``.

        Args:
            heights: Heights to look up

        Returns:
            Mapping of height to hash covering every requested height

        Raises:
            FetchError: If any batch still fails after all retries
        """
        hashes: dict[int, str] = {}
        for i in range(0, len(heights), self.rpc_batch_size):
            chunk = list(heights[i : i + self.rpc_batch_size])
            hashes.update(await self._with_retry(self._hashes_at, chunk))
        return hashes

    async def fetch_block(self, height: int) -> CachedBlock:
        """Fetch the coinbase summary of the canonical block at ``height``.

        Resolves the hash with ``getblockhash`` and then reads the block with
        ``getblock <hash> 2``, keeping the first transaction's outputs.

        Raises:
            FetchError: If the block cannot be fetched after all retries
        """
        block = await self._with_retry(self._fetch_block, height)
        logger.debug("Fetched block %d (%s)", height, block.hash)
        return block

    async def coinbase_outputs_at(self, height: int) -> list[CoinbaseOutput]:
        """Coinbase outputs of the canonical block at ``height``."""
        return list((await self.fetch_block(height)).outputs)


__all__ = ["ChainReader"]
