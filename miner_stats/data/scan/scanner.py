"""Scan a height range: validate or fetch blocks, derive addresses, emit matches."""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence

from miner_stats.data.blocks.cache import BlockCache
from miner_stats.data.blocks.models import CachedBlock
from miner_stats.data.blocks.reader import ChainReader
from miner_stats.data.credentials.derive import derive_transparent_address
from miner_stats.data.credentials.models import ViewingCredential
from miner_stats.data.scan.models import (
    AmbiguousMatch,
    MatchRecord,
    ProcessedHeight,
    ScanRange,
)
from miner_stats.helpers.constants import DEFAULT_BATCH_SIZE, DEFAULT_PARALLEL_FETCHES
from miner_stats.helpers.errors import FetchError, ReorgDetected, ScanAbortedError
from miner_stats.helpers.logging import get_logger

logger = get_logger(__name__)


class Scanner:
    """Walk a height range in increasing order and emit MatchRecords lazily.

    Heights are handled in windows of ``batch_size``. Cached blocks in a
    window are checked against canonical hashes with one batched lookup; the
    lowest mismatching height is treated as a reorg fork point and every
    cached height from there on is dropped. Cache misses are fetched
    concurrently (at most ``parallel_fetches`` at a time), written to the
    cache in height order, and then matched in height order.

    Attributes:
        processed: Every fully processed height, in order
        highest_processed: Last fully processed height, or None
        ambiguous_matches: Addresses claimed by several credentials
        reorgs: Reorg events detected during the scan
        fetched_count: Blocks fetched from the node
        cached_count: Blocks served from the cache after validation

    Example:
        ```python
        scanner = Scanner(reader, cache, batch_size=100, parallel_fetches=8)
        async for record in scanner.scan(credentials, scan_range):
            aggregator.add(record)
        ```
    """

    def __init__(
        self,
        reader: ChainReader,
        cache: BlockCache,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        parallel_fetches: int = DEFAULT_PARALLEL_FETCHES,
        on_height: Callable[[int], None] | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            reader: Chain reader used for hashes and block fetches
            cache: Open block cache, owned by this scanner for the run
            batch_size: Heights per window
            parallel_fetches: Concurrent block fetches per window
            on_height: Called with each height once it is processed
        """
        if batch_size <= 0 or parallel_fetches <= 0:
            msg = "batch_size and parallel_fetches must be positive"
            raise ValueError(msg)

        self.reader = reader
        self.cache = cache
        self.batch_size = batch_size
        self.parallel_fetches = parallel_fetches
        self.on_height = on_height
        self._reset()

    def _reset(self) -> None:
        self.processed: list[ProcessedHeight] = []
        self.highest_processed: int | None = None
        self.ambiguous_matches: list[AmbiguousMatch] = []
        self.reorgs: list[ReorgDetected] = []
        self.fetched_count = 0
        self.cached_count = 0

    async def scan(
        self, credentials: Sequence[ViewingCredential], scan_range: ScanRange
    ) -> AsyncIterator[MatchRecord]:
        """Scan ``scan_range`` and yield matches in height, then credential, order.

        Run statistics (`processed`, `reorgs`, counters) describe the latest
        call only.

        Args:
            credentials: Parsed credentials in configuration order
            scan_range: Inclusive range to scan

        Yields:
            MatchRecord for each (height, credential) whose derived address
            is paid by the coinbase

        Raises:
            DerivationOutOfRangeError: If the range end is outside a
                credential's index domain (raised before any network access)
            ScanAbortedError: If a fetch fails after all retries
        """
        self._reset()

        # Heights only grow, so checking the end covers the whole range
        for credential in credentials:
            derive_transparent_address(credential, scan_range.end_height)

        last_tip = await self.cache.get_last_tip()
        logger.info(
            "Scanning heights %d-%d for %d miners (previous tip: %s)",
            scan_range.start_height,
            scan_range.end_height,
            len(credentials),
            last_tip if last_tip is not None else "none",
        )

        heights = scan_range.heights()
        for i in range(0, len(heights), self.batch_size):
            window = heights[i : i + self.batch_size]
            blocks, failures = await self._load_window(window)

            for height in window:
                if height in failures:
                    cause = failures[height]
                    logger.error(
                        "Giving up at height %d; last processed height is %s",
                        height,
                        self.highest_processed,
                    )
                    raise ScanAbortedError(
                        self.highest_processed, height, cause
                    ) from cause

                block = blocks[height]
                for record in self._match_block(credentials, block):
                    yield record
                self._mark_processed(block)

        await self.cache.set_last_tip(scan_range.end_height)
        logger.info(
            "Scan complete: %d heights (%d fetched, %d cached, %d reorgs)",
            len(self.processed),
            self.fetched_count,
            self.cached_count,
            len(self.reorgs),
        )

    # ------------------------------------------------------------------
    # Block loading
    # ------------------------------------------------------------------

    async def _load_window(
        self, window: range
    ) -> tuple[dict[int, CachedBlock], dict[int, FetchError]]:
        cached = await self._validated_cached(window)
        misses = [height for height in window if height not in cached]
        fetched, failures = await self._fetch_misses(misses)

        self.cached_count += len(cached)
        self.fetched_count += len(fetched)
        logger.debug(
            "Window %d-%d: %d cached, %d fetched, %d failed",
            window[0],
            window[-1],
            len(cached),
            len(fetched),
            len(failures),
        )
        return cached | fetched, failures

    async def _validated_cached(self, window: range) -> dict[int, CachedBlock]:
        cached = await self.cache.get_many(window)
        if not cached:
            return cached

        try:
            canonical = await self.reader.hashes_at(sorted(cached))
        except FetchError as e:
            raise ScanAbortedError(self.highest_processed, window[0], e) from e

        stale = sorted(
            height
            for height, block in cached.items()
            if canonical[height] != block.hash
        )
        if not stale:
            return cached

        fork = stale[0]
        event = ReorgDetected(
            height=fork, cached_hash=cached[fork].hash, canonical_hash=canonical[fork]
        )
        removed = await self.cache.invalidate_from(fork)
        self.reorgs.append(event)
        logger.info(
            "Reorg detected at height %d (cached %s, canonical %s); "
            "dropped %d cached blocks from the fork point",
            event.height,
            event.cached_hash,
            event.canonical_hash,
            removed,
        )
        return {height: block for height, block in cached.items() if height < fork}

    async def _fetch_misses(
        self, heights: Sequence[int]
    ) -> tuple[dict[int, CachedBlock], dict[int, FetchError]]:
        if not heights:
            return {}, {}

        semaphore = asyncio.Semaphore(self.parallel_fetches)

        async def fetch(height: int) -> CachedBlock:
            async with semaphore:
                return await self.reader.fetch_block(height)

        results = await asyncio.gather(
            *(fetch(height) for height in heights), return_exceptions=True
        )

        fetched: dict[int, CachedBlock] = {}
        failures: dict[int, FetchError] = {}
        unexpected: BaseException | None = None
        for height, result in zip(heights, results, strict=True):
            if isinstance(result, CachedBlock):
                await self.cache.put(result)
                fetched[height] = result
            elif isinstance(result, FetchError):
                failures[height] = result
            elif unexpected is None:
                unexpected = result

        if unexpected is not None:
            raise unexpected
        return fetched, failures

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def _match_block(
        self, credentials: Sequence[ViewingCredential], block: CachedBlock
    ) -> list[MatchRecord]:
        records: list[MatchRecord] = []
        claims: dict[str, list[str]] = {}

        for credential in credentials:
            derived = derive_transparent_address(credential, block.height)
            value = sum(
                output.value_zat
                for output in block.outputs
                if output.pays(derived.address)
            )
            if value <= 0:
                continue

            records.append(
                MatchRecord(
                    height=block.height,
                    block_hash=block.hash,
                    address=derived.address,
                    value_zat=value,
                    miner_label=credential.label,
                )
            )
            claims.setdefault(derived.address, []).append(credential.label)

        for address, labels in claims.items():
            if len(labels) > 1:
                ambiguous = AmbiguousMatch(
                    height=block.height, address=address, miner_labels=tuple(labels)
                )
                self.ambiguous_matches.append(ambiguous)
                logger.warning(
                    "Address %s at height %d matches several miners: %s",
                    address,
                    block.height,
                    ", ".join(labels),
                )

        return records

    def _mark_processed(self, block: CachedBlock) -> None:
        self.processed.append(
            ProcessedHeight(
                height=block.height,
                block_hash=block.hash,
                coinbase_value_zat=block.coinbase_value_zat,
            )
        )
        self.highest_processed = block.height
        if self.on_height is not None:
            self.on_height(block.height)


__all__ = ["Scanner"]
