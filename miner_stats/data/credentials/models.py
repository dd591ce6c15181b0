"""Viewing credential models."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Self

from ecdsa import SECP256k1, MalformedPointError, VerifyingKey

from miner_stats.data.credentials.encoding import (
    UFVK_HRPS,
    Typecode,
    UnifiedItem,
    decode_unified,
    encode_unified,
)
from miner_stats.helpers.config import MinerKeyEntry
from miner_stats.helpers.errors import ConfigurationError, InvalidCredentialError
from miner_stats.helpers.parsers import shorten_key

type Network = Literal["main", "test", "regtest"]

TRANSPARENT_KEY_LEN = 65


@dataclass(frozen=True)
class TransparentAccountKey:
    """Account-level transparent BIP32 public node (``m/44'/133'/account'``).

    Attributes:
        chain_code: 32-byte chain code.
        public_key: 33-byte compressed secp256k1 public key.
    """

    chain_code: bytes
    public_key: bytes

    def __post_init__(self) -> None:
        if len(self.chain_code) != 32:
            msg = f"chain code must be 32 bytes, got {len(self.chain_code)}"
            raise ValueError(msg)
        if len(self.public_key) != 33 or self.public_key[0] not in (0x02, 0x03):
            msg = "public key must be a 33-byte compressed point"
            raise ValueError(msg)
        try:
            VerifyingKey.from_string(self.public_key, curve=SECP256k1)
        except (MalformedPointError, ValueError) as e:
            msg = "public key is not a point on secp256k1"
            raise ValueError(msg) from e

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Parse the UFVK P2PKH item (``chain_code || public_key``)."""
        if len(data) != TRANSPARENT_KEY_LEN:
            msg = (
                f"transparent key item must be {TRANSPARENT_KEY_LEN} bytes, "
                f"got {len(data)}"
            )
            raise ValueError(msg)
        return cls(chain_code=data[:32], public_key=data[32:])

    def to_bytes(self) -> bytes:
        """Serialize as the UFVK P2PKH item."""
        return self.chain_code + self.public_key


@dataclass(frozen=True)
class ViewingCredential:
    """A miner's unified full viewing key, reduced to what address derivation needs.

    Instances are only built through :meth:`parse` (or directly in tests) and
    never change during a run.
    """

    label: str
    network: Network
    transparent: TransparentAccountKey

    @classmethod
    def parse(cls, label: str, encoded: str, network: Network) -> Self:
        """Parse a UFVK string.

        Raises:
            InvalidCredentialError: If the encoding is invalid, belongs to
                another network, or has no transparent component.
        """
        try:
            items = decode_unified(encoded, UFVK_HRPS[network])
        except ValueError as e:
            raise InvalidCredentialError(
                label, f"{e} (key {shorten_key(encoded)})"
            ) from e

        transparent = next(
            (item for item in items if item.typecode == Typecode.P2PKH), None
        )
        if transparent is None:
            raise InvalidCredentialError(label, "key has no transparent component")

        try:
            account_key = TransparentAccountKey.from_bytes(transparent.data)
        except ValueError as e:
            raise InvalidCredentialError(label, str(e)) from e
        return cls(label=label, network=network, transparent=account_key)

    def encode(self, extra_items: Sequence[UnifiedItem] = ()) -> str:
        """Encode back to a UFVK string (transparent item plus ``extra_items``)."""
        items = [UnifiedItem(Typecode.P2PKH, self.transparent.to_bytes())]
        items.extend(extra_items)
        return encode_unified(UFVK_HRPS[self.network], items)


def parse_credentials(
    entries: Sequence[MinerKeyEntry], network: Network
) -> list[ViewingCredential]:
    """Parse every configured key, failing the whole list on the first error.

    Args:
        entries: Configured ``[[ufvks]]`` entries, in report order
        network: Network the keys must belong to

    Returns:
        Credentials in configuration order

    Raises:
        ConfigurationError: If the list is empty or labels repeat
        InvalidCredentialError: If any key fails to parse
    """
    if not entries:
        msg = "at least one viewing key is required"
        raise ConfigurationError(msg)

    labels = [entry.label for entry in entries]
    if len(set(labels)) != len(labels):
        msg = "miner labels must be unique"
        raise ConfigurationError(msg)

    return [ViewingCredential.parse(entry.label, entry.key, network) for entry in entries]


__all__ = [
    "Network",
    "TransparentAccountKey",
    "ViewingCredential",
    "parse_credentials",
]
