"""Test data builders: generated viewing keys and an in-memory chain."""

import hashlib
from collections.abc import Iterable, Mapping, Sequence

from ecdsa import SECP256k1, SigningKey

from miner_stats.data.blocks.models import CachedBlock, CoinbaseOutput
from miner_stats.data.credentials.derive import derive_transparent_address
from miner_stats.data.credentials.models import (
    Network,
    TransparentAccountKey,
    ViewingCredential,
)
from miner_stats.helpers.errors import FetchError


BLOCK_REWARD_ZAT = 625_000_000
FUNDING_STREAM_ZAT = 156_250_000
FUNDING_STREAM_ADDRESS = "t3dvVE3SQEi7kqNzwrfNePxZ1d4hUyztBA1"
OTHER_MINER_ADDRESS = "t1KstPVzcNEK4ZeauQ6cogoqxQBMDSiRnGr"


def account_key(secret: int, seed: str) -> TransparentAccountKey:
    """Account node from a private scalar and a chain code seed."""
    public_key = (
        SigningKey.from_secret_exponent(secret, curve=SECP256k1)
        .get_verifying_key()
        .to_string("compressed")
    )
    return TransparentAccountKey(
        chain_code=hashlib.sha256(seed.encode()).digest(), public_key=public_key
    )


def make_credential(
    label: str, secret: int, network: Network = "main"
) -> ViewingCredential:
    """Deterministic credential for tests."""
    return ViewingCredential(
        label=label, network=network, transparent=account_key(secret, label)
    )


def block_hash(height: int, fork: str = "") -> str:
    """Deterministic 64-hex block hash; a different ``fork`` gives other hashes."""
    return hashlib.sha256(f"{fork}:{height}".encode()).hexdigest()


def build_chain(
    credentials: Sequence[ViewingCredential],
    start: int,
    end: int,
    winners: Mapping[int, str],
    *,
    fork: str = "",
    fork_from: int | None = None,
) -> dict[int, CachedBlock]:
    """Build blocks ``start..end`` whose coinbase pays ``winners[height]``.

    Heights without a winner pay an unrelated miner address. Every block also
    carries a funding stream output. Heights from ``fork_from`` on get hashes
    of the ``fork`` branch.
    """
    by_label = {credential.label: credential for credential in credentials}
    chain: dict[int, CachedBlock] = {}
    for height in range(start, end + 1):
        label = winners.get(height)
        payee = (
            derive_transparent_address(by_label[label], height).address
            if label is not None
            else OTHER_MINER_ADDRESS
        )
        branch = fork if fork_from is not None and height >= fork_from else ""
        chain[height] = CachedBlock(
            height=height,
            hash=block_hash(height, branch),
            outputs=[
                CoinbaseOutput(value_zat=BLOCK_REWARD_ZAT, addresses=[payee]),
                CoinbaseOutput(
                    value_zat=FUNDING_STREAM_ZAT, addresses=[FUNDING_STREAM_ADDRESS]
                ),
            ],
        )
    return chain


class FakeChainReader:
    """In-memory stand-in for ChainReader that records what was requested."""

    def __init__(
        self,
        chain: Mapping[int, CachedBlock],
        *,
        fail_at: Iterable[int] = (),
    ) -> None:
        self.chain = dict(chain)
        self.fail_at = set(fail_at)
        self.fetched: list[int] = []
        self.hash_lookups: list[int] = []
        self.tip_calls = 0

    async def tip_height(self) -> int:
        self.tip_calls += 1
        return max(self.chain)

    async def hash_at(self, height: int) -> str:
        self.hash_lookups.append(height)
        return self.chain[height].hash

    async def hashes_at(self, heights: Sequence[int]) -> dict[int, str]:
        self.hash_lookups.extend(heights)
        return {height: self.chain[height].hash for height in heights}

    async def fetch_block(self, height: int) -> CachedBlock:
        if height in self.fail_at:
            raise FetchError("getblock", "connection refused", height=height)
        self.fetched.append(height)
        return self.chain[height]

    async def coinbase_outputs_at(self, height: int) -> list[CoinbaseOutput]:
        return list((await self.fetch_block(height)).outputs)

    @property
    def calls(self) -> int:
        return self.tip_calls + len(self.hash_lookups) + len(self.fetched)


