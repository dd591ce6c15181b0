"""Persistent height -> coinbase cache backed by SQLite."""

import json
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from pathlib import Path

from typing import Any, Self

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import DatabaseError
from sqlalchemy.ext.asyncio import AsyncEngine

from miner_stats.data.blocks.db import CachedBlockDB, CacheMetaDB
from miner_stats.data.blocks.models import CachedBlock
from miner_stats.helpers.db import (
    MEMORY_PATH,
    create_engine,
    create_session_factory,
    create_tables,
    upsert_rows,
)
from miner_stats.helpers.errors import ConfigurationError
from miner_stats.helpers.logging import get_logger

logger = get_logger(__name__)

LAST_TIP_KEY = "last_tip"

# Stay well below SQLite's bound parameter limit
_SELECT_CHUNK = 500


class BlockCache:
    """Block cache owned by exactly one scan.

    Entries are trusted only provisionally: the scanner re-validates each
    cached hash against the chain before using it. Every write commits its own
    transaction, so an interrupted run leaves only complete rows behind. A row
    whose stored outputs cannot be decoded is reported as absent.

    Usage::

        async with BlockCache.open("cache/blocks.sqlite") as cache:
            block = await cache.get(1000)
            if block is None:
                await cache.put(fetched_block)
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Wrap an engine whose tables already exist; prefer :meth:`open`."""
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    @asynccontextmanager
    async def open(cls, path: Path | str) -> AsyncIterator[Self]:
        """Open (creating if needed) the cache at ``path``.

        The engine is disposed on every exit path, including errors and
        cancellation.

        Args:
            path: Cache file path, or ":memory:" for an isolated cache

        Raises:
            ConfigurationError: If the file exists but is not a SQLite database
        """
        if str(path) != MEMORY_PATH:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(path)
        try:
            try:
                await create_tables(engine)
            except DatabaseError as e:
                msg = (
                    f"cache file {path} is not a SQLite database; "
                    "use --import-json to load a JSON cache"
                )
                raise ConfigurationError(msg) from e
            yield cls(engine)
        finally:
            await engine.dispose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(row: CachedBlockDB) -> CachedBlock | None:
        try:
            return CachedBlock(
                height=row.height, hash=row.hash, outputs=json.loads(row.outputs)
            )
        except (ValueError, ValidationError) as e:
            logger.warning(
                "Ignoring corrupt cache entry at height %d: %s", row.height, e
            )
            return None

    async def get(self, height: int) -> CachedBlock | None:
        """Return the cached block at ``height``, or None if absent or corrupt."""
        async with self._session_factory() as session:
            row = await session.get(CachedBlockDB, height)
            return self._decode(row) if row is not None else None

    async def get_many(self, heights: Sequence[int]) -> dict[int, CachedBlock]:
        """Return the readable cached blocks among ``heights``."""
        found: dict[int, CachedBlock] = {}
        async with self._session_factory() as session:
            for i in range(0, len(heights), _SELECT_CHUNK):
                chunk = list(heights[i : i + _SELECT_CHUNK])
                result = await session.execute(
                    select(CachedBlockDB).where(CachedBlockDB.height.in_(chunk))
                )
                for row in result.scalars():
                    block = self._decode(row)
                    if block is not None:
                        found[block.height] = block
        return found

    async def heights(self) -> list[int]:
        """All stored heights in increasing order."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(CachedBlockDB.height).order_by(CachedBlockDB.height)
            )
            return list(result.scalars())

    async def get_last_tip(self) -> int | None:
        """Tip height recorded by the last completed scan."""
        async with self._session_factory() as session:
            row = await session.get(CacheMetaDB, LAST_TIP_KEY)
            if row is None:
                return None
            try:
                return int(row.value)
            except ValueError:
                logger.warning("Ignoring corrupt last tip value %r", row.value)
                return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _row(block: CachedBlock) -> dict[str, Any]:
        return {
            "height": block.height,
            "hash": block.hash,
            "outputs": json.dumps(
                [output.model_dump() for output in block.outputs],
                separators=(",", ":"),
            ),
        }

    async def put(self, block: CachedBlock) -> None:
        """Insert or replace the entry for ``block.height``."""
        await self.put_many([block])

    async def put_many(self, blocks: Iterable[CachedBlock]) -> None:
        """Insert or replace several entries in one transaction."""
        rows = [self._row(block) for block in blocks]
        if not rows:
            return
        async with self._session_factory() as session:
            try:
                await upsert_rows(session, CachedBlockDB, rows)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def invalidate(self, height: int) -> None:
        """Drop the entry at ``height`` if present."""
        async with self._session_factory() as session:
            await session.execute(
                delete(CachedBlockDB).where(CachedBlockDB.height == height)
            )
            await session.commit()

    async def invalidate_from(self, height: int) -> int:
        """Drop every entry at or above ``height`` (reorg fork point).

        Returns:
            Number of entries removed
        """
        async with self._session_factory() as session:
            result = await session.execute(
                delete(CachedBlockDB).where(CachedBlockDB.height >= height)
            )
            await session.commit()
            return result.rowcount or 0

    async def set_last_tip(self, tip: int) -> None:
        """Record the tip height a completed scan ran up to."""
        async with self._session_factory() as session:
            await upsert_rows(
                session, CacheMetaDB, [{"key": LAST_TIP_KEY, "value": str(tip)}]
            )
            await session.commit()

    async def import_json(self, path: Path | str) -> int:
        """Import a JSON cache file written by earlier releases.

        The expected layout is ``{"last_tip": int | null, "blocks": {height:
        {"height", "hash", "outputs": [{"value_zat", "addresses"}]}}}``.
        Malformed entries are skipped.

        Args:
            path: JSON cache file

        Returns:
            Number of imported blocks

        Raises:
            ValueError: If the file is not a JSON object
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            msg = f"{path} does not contain a JSON object"
            raise ValueError(msg)

        blocks: list[CachedBlock] = []
        entries = raw.get("blocks") or {}
        for key, entry in entries.items() if isinstance(entries, dict) else ():
            try:
                blocks.append(CachedBlock.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping malformed cache entry %s: %s", key, e)

        await self.put_many(blocks)

        last_tip = raw.get("last_tip")
        if isinstance(last_tip, int):
            await self.set_last_tip(last_tip)

        logger.info("Imported %d cached blocks from %s", len(blocks), path)
        return len(blocks)


__all__ = ["LAST_TIP_KEY", "BlockCache"]
