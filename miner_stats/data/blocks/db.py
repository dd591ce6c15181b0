"""Database models for the block cache."""

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from miner_stats.helpers.db import Base


class CachedBlockDB(Base):
    """Coinbase summary of one height; outputs stored as a JSON array."""

    __tablename__ = "cached_blocks"

    height: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)
    outputs: Mapped[str] = mapped_column(Text, nullable=False)


class CacheMetaDB(Base):
    """Key/value metadata of the cache (e.g. the tip recorded by the last run)."""

    __tablename__ = "cache_meta"

    key: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)
