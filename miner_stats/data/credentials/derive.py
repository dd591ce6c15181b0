"""Per-height transparent address derivation.

A miner's coinbase address at height ``h`` is the external-scope transparent
P2PKH address with child index ``h``::

    account key --(child 0, external scope)--> external node --(child h)--> pubkey
    address = Base58Check(network prefix || RIPEMD160(SHA256(pubkey)))

Only non-hardened public derivation (BIP32 ``CKDpub``) is needed, so no
private key material is ever involved.
"""

import hashlib
import hmac
import struct
from dataclasses import dataclass
from functools import lru_cache

import base58
from ecdsa import SECP256k1, VerifyingKey
from ecdsa.ellipticcurve import INFINITY

from miner_stats.data.credentials.models import (
    Network,
    TransparentAccountKey,
    ViewingCredential,
)
from miner_stats.helpers.constants import MAX_CHILD_INDEX
from miner_stats.helpers.errors import DerivationError, DerivationOutOfRangeError

_CURVE_ORDER = SECP256k1.order
_CURVE_GEN = SECP256k1.generator

EXTERNAL_SCOPE = 0

# Base58Check version prefixes for transparent P2PKH addresses
P2PKH_PREFIXES: dict[str, bytes] = {
    "main": b"\x1c\xb8",  # t1...
    "test": b"\x1d\x25",  # tm...
    "regtest": b"\x1d\x25",
}


@dataclass(frozen=True)
class DerivedAddress:
    """Receiver address of one credential at one height. Never cached."""

    credential_label: str
    height: int
    address: str


def hash160(data: bytes) -> bytes:
    """RIPEMD-160(SHA-256(data))."""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def _point_to_compressed(point) -> bytes:  # type: ignore[no-untyped-def]
    prefix = b"\x02" if point.y() % 2 == 0 else b"\x03"
    return prefix + point.x().to_bytes(32, "big")


def derive_public_child(node: TransparentAccountKey, index: int) -> TransparentAccountKey:
    """BIP32 non-hardened public child derivation (CKDpub).

    Raises:
        DerivationError: If the index is hardened or the child is invalid
            (probability below 2^-127).
    """
    if not 0 <= index <= MAX_CHILD_INDEX:
        msg = f"child index {index} is not a non-hardened index"
        raise DerivationError(msg)

    data = node.public_key + struct.pack(">I", index)
    digest = hmac.new(node.chain_code, data, hashlib.sha512).digest()
    il, ir = digest[:32], digest[32:]

    il_int = int.from_bytes(il, "big")
    if il_int >= _CURVE_ORDER:
        msg = f"derived key at index {index} is invalid (il >= curve order)"
        raise DerivationError(msg)

    parent_point = VerifyingKey.from_string(node.public_key, curve=SECP256k1).pubkey.point
    child_point = parent_point + _CURVE_GEN * il_int
    if child_point == INFINITY:
        msg = f"derived key at index {index} is the point at infinity"
        raise DerivationError(msg)

    return TransparentAccountKey(
        chain_code=ir, public_key=_point_to_compressed(child_point)
    )


@lru_cache(maxsize=256)
def external_node(account: TransparentAccountKey) -> TransparentAccountKey:
    """External-scope node of an account key, derived once per account."""
    return derive_public_child(account, EXTERNAL_SCOPE)


def encode_p2pkh(pubkey: bytes, network: Network) -> str:
    """Encode a compressed public key as a transparent P2PKH address."""
    payload = P2PKH_PREFIXES[network] + hash160(pubkey)
    return base58.b58encode_check(payload).decode("ascii")


def derive_transparent_address(
    credential: ViewingCredential, height: int
) -> DerivedAddress:
    """Derive the credential's coinbase receiver address for a block height.

    Deterministic and free of I/O: equal inputs always give the same address.

    Args:
        credential: Parsed viewing credential
        height: Block height, used as the child index

    Returns:
        DerivedAddress in the node's canonical string form

    Raises:
        DerivationOutOfRangeError: If the height is negative or above 2^31 - 1
    """
    if not 0 <= height <= MAX_CHILD_INDEX:
        raise DerivationOutOfRangeError(credential.label, height)

    child = derive_public_child(external_node(credential.transparent), height)
    return DerivedAddress(
        credential_label=credential.label,
        height=height,
        address=encode_p2pkh(child.public_key, credential.network),
    )


__all__ = [
    "P2PKH_PREFIXES",
    "DerivedAddress",
    "derive_public_child",
    "derive_transparent_address",
    "encode_p2pkh",
    "external_node",
    "hash160",
]
