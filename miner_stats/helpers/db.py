"""Database connection helpers."""

from collections.abc import Sequence
from pathlib import Path

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool


Base = declarative_base()

MEMORY_PATH = ":memory:"


def get_database_url(path: Path | str) -> str:
    """Build the SQLite URL for a cache file.

    Args:
        path: Cache file path, or ":memory:" for a private in-memory database

    Returns:
        str: aiosqlite database URL
    """
    if str(path) == MEMORY_PATH:
        return "sqlite+aiosqlite:///:memory:"
    return f"sqlite+aiosqlite:///{Path(path)}"


def create_engine(path: Path | str) -> AsyncEngine:
    """Create an async engine owned by a single cache handle.

    In-memory databases live on one connection, so they use a static pool
    to keep every session on the same database.

    Args:
        path: Cache file path or ":memory:"

    Returns:
        Configured AsyncEngine
    """
    url = get_database_url(path)
    if str(path) == MEMORY_PATH:
        return create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(url, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on ``Base`` if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def upsert_rows[DBModelType](
    session: AsyncSession,
    db_model_class: type[DBModelType],
    rows: Sequence[dict[str, Any]],
) -> None:
    """Upsert rows using SQLite INSERT ... ON CONFLICT DO UPDATE.

    The statement is executed on the given session; the caller commits, so
    several upserts can share one transaction.

    Args:
        session: Open database session
        db_model_class: The SQLAlchemy model class (e.g., CachedBlockDB)
        rows: Column-name to value mappings

    Examples:
        async with session_factory() as session:
            await upsert_rows(session, CachedBlockDB, [{"height": 1, ...}])
            await session.commit()

    Raises:
        ValueError: If the database model class cannot be inspected
    """
    if not rows:
        return

    mapper = inspect(db_model_class)
    if not mapper:
        msg = f"Cannot inspect {db_model_class}"
        raise ValueError(msg)
    pk_columns = [col.name for col in mapper.primary_key]

    stmt = sqlite_insert(db_model_class).values(list(rows))
    update_dict = {
        col: stmt.excluded[col] for col in rows[0] if col not in pk_columns
    }
    stmt = stmt.on_conflict_do_update(index_elements=pk_columns, set_=update_dict)
    await session.execute(stmt)


__all__ = [
    "MEMORY_PATH",
    "Base",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "get_database_url",
    "upsert_rows",
]
