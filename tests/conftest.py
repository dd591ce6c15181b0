"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from miner_stats.data.blocks.cache import BlockCache
from miner_stats.data.blocks.models import CachedBlock
from miner_stats.data.credentials.models import ViewingCredential
from tests.factories import build_chain, make_credential


@pytest.fixture
def alpha() -> ViewingCredential:
    return make_credential("Alpha", 0xA1)


@pytest.fixture
def beta() -> ViewingCredential:
    return make_credential("Beta", 0xB2)


@pytest.fixture
def gamma() -> ViewingCredential:
    return make_credential("Gamma", 0xC3)


@pytest.fixture
def miners(
    alpha: ViewingCredential, beta: ViewingCredential, gamma: ViewingCredential
) -> list[ViewingCredential]:
    """Three miners in configuration order."""
    return [alpha, beta, gamma]


@pytest.fixture
def winners() -> dict[int, str]:
    """Range 1000-1250: Alpha wins 28 blocks, Beta 11 and Gamma 6."""
    assignment: dict[int, str] = {}
    assignment.update({1000 + 5 * i: "Alpha" for i in range(28)})
    assignment.update({1001 + 5 * i: "Beta" for i in range(11)})
    assignment.update({1002 + 5 * i: "Gamma" for i in range(6)})
    return assignment


@pytest.fixture
def chain(
    miners: list[ViewingCredential], winners: dict[int, str]
) -> dict[int, CachedBlock]:
    """Blocks 1000-1250 paying the ``winners`` assignment."""
    return build_chain(miners, 1000, 1250, winners)


@pytest_asyncio.fixture
async def memory_cache() -> AsyncGenerator[BlockCache]:
    """Isolated in-memory cache."""
    async with BlockCache.open(":memory:") as cache:
        yield cache


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    """Path of a cache file that does not exist yet."""
    return tmp_path / "cache" / "blocks.sqlite"
