"""Unified viewing key encoding (ZIP 316).

A unified encoding is built from typed items:

- items are serialized as ``typecode || length || value`` (CompactSize
  integers), in ascending typecode order;
- the HRP, zero-padded to 16 bytes, is appended;
- the result is scrambled with F4Jumble (BLAKE2b-based Feistel network);
- the bytes are regrouped into 5-bit words and Bech32m-encoded, without
  BIP-173's 90 character limit.
"""

import hashlib
import struct
from dataclasses import dataclass
from enum import IntEnum
from math import ceil

from bech32 import CHARSET, bech32_hrp_expand, bech32_polymod, convertbits

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UFVK_HRPS = {
    "main": "uview",
    "test": "uviewtest",
    "regtest": "uviewregtest",
}

PADDING_LEN = 16
CHECKSUM_LEN = 6

# BIP 350 checksum constant
BECH32M_CONST = 0x2BC830A3

_H_PERSONAL = b"UA_F4Jumble_H"
_G_PERSONAL = b"UA_F4Jumble_G"
_HASH_LEN = 64
_MIN_JUMBLE_LEN = 48
_MAX_JUMBLE_LEN = 4_194_368


class Typecode(IntEnum):
    """Item typecodes of unified full viewing keys."""

    P2PKH = 0x00
    P2SH = 0x01
    SAPLING = 0x02
    ORCHARD = 0x03


@dataclass(frozen=True)
class UnifiedItem:
    """One typed item of a unified encoding."""

    typecode: int
    data: bytes


# ---------------------------------------------------------------------------
# F4Jumble
# ---------------------------------------------------------------------------


def _xor(left: bytes, right: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(left, right, strict=True))


def _h_round(i: int, data: bytes, length: int) -> bytes:
    person = _H_PERSONAL + bytes([i, 0, 0])
    return hashlib.blake2b(data, digest_size=length, person=person).digest()


def _g_round(i: int, data: bytes, length: int) -> bytes:
    blocks = (
        hashlib.blake2b(
            data,
            digest_size=_HASH_LEN,
            person=_G_PERSONAL + bytes([i]) + struct.pack("<H", j),
        ).digest()
        for j in range(ceil(length / _HASH_LEN))
    )
    return b"".join(blocks)[:length]


def _split_lengths(message: bytes) -> tuple[int, int]:
    if not _MIN_JUMBLE_LEN <= len(message) <= _MAX_JUMBLE_LEN:
        msg = f"F4Jumble input length {len(message)} out of range"
        raise ValueError(msg)
    left = min(_HASH_LEN, len(message) // 2)
    return left, len(message) - left


def f4jumble(message: bytes) -> bytes:
    """Apply the F4Jumble permutation."""
    left_len, right_len = _split_lengths(message)
    a, b = message[:left_len], message[left_len:]
    x = _xor(b, _g_round(0, a, right_len))
    y = _xor(a, _h_round(0, x, left_len))
    d = _xor(x, _g_round(1, y, right_len))
    c = _xor(y, _h_round(1, d, left_len))
    return c + d


def f4jumble_inv(message: bytes) -> bytes:
    """Invert the F4Jumble permutation."""
    left_len, right_len = _split_lengths(message)
    c, d = message[:left_len], message[left_len:]
    y = _xor(c, _h_round(1, d, left_len))
    x = _xor(d, _g_round(1, y, right_len))
    a = _xor(y, _h_round(0, x, left_len))
    b = _xor(x, _g_round(0, a, right_len))
    return a + b


# ---------------------------------------------------------------------------
# CompactSize TLV items
# ---------------------------------------------------------------------------


def write_compact_size(value: int) -> bytes:
    """Serialize an integer as a Bitcoin-style CompactSize."""
    if value < 0:
        msg = f"CompactSize cannot encode {value}"
        raise ValueError(msg)
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_compact_size(data: bytes, offset: int) -> tuple[int, int]:
    """Read a canonical CompactSize at ``offset``.

    Returns:
        Tuple of (value, new offset)

    Raises:
        ValueError: If the data is truncated or not minimally encoded.
    """
    if offset >= len(data):
        msg = "truncated CompactSize"
        raise ValueError(msg)
    first = data[offset]
    if first < 0xFD:
        return first, offset + 1

    width, fmt, minimum = {
        0xFD: (2, "<H", 0xFD),
        0xFE: (4, "<I", 0x10000),
        0xFF: (8, "<Q", 0x100000000),
    }[first]
    end = offset + 1 + width
    if end > len(data):
        msg = "truncated CompactSize"
        raise ValueError(msg)
    (value,) = struct.unpack(fmt, data[offset + 1 : end])
    if value < minimum:
        msg = "non-canonical CompactSize"
        raise ValueError(msg)
    return value, end


def encode_items(items: list[UnifiedItem]) -> bytes:
    """Serialize items in ascending typecode order."""
    ordered = sorted(items, key=lambda item: item.typecode)
    return b"".join(
        write_compact_size(item.typecode) + write_compact_size(len(item.data)) + item.data
        for item in ordered
    )


def parse_items(raw: bytes) -> list[UnifiedItem]:
    """Parse serialized items.

    Raises:
        ValueError: If an item is truncated, or typecodes are duplicated or
            out of order.
    """
    items: list[UnifiedItem] = []
    offset = 0
    while offset < len(raw):
        typecode, offset = read_compact_size(raw, offset)
        length, offset = read_compact_size(raw, offset)
        end = offset + length
        if end > len(raw):
            msg = f"item with typecode {typecode:#x} is truncated"
            raise ValueError(msg)
        if items and typecode <= items[-1].typecode:
            msg = "items are not in strictly ascending typecode order"
            raise ValueError(msg)
        items.append(UnifiedItem(typecode=typecode, data=raw[offset:end]))
        offset = end
    if not items:
        msg = "encoding contains no items"
        raise ValueError(msg)
    return items


# ---------------------------------------------------------------------------
# Bech32m (unbounded length)
# ---------------------------------------------------------------------------


def bech32m_decode(text: str) -> tuple[str, list[int]]:
    """Decode a Bech32m string of any length.

    Returns:
        Tuple of (hrp, 5-bit data words without checksum)

    Raises:
        ValueError: If the string is malformed or the checksum is not Bech32m.
    """
    if any(ord(char) < 33 or ord(char) > 126 for char in text):
        msg = "invalid character in encoding"
        raise ValueError(msg)
    if text.lower() != text and text.upper() != text:
        msg = "mixed-case encoding"
        raise ValueError(msg)
    text = text.lower()
    pos = text.rfind("1")
    if pos < 1 or pos + CHECKSUM_LEN + 1 > len(text):
        msg = "missing separator or checksum"
        raise ValueError(msg)

    hrp = text[:pos]
    try:
        data = [CHARSET.index(char) for char in text[pos + 1 :]]
    except ValueError as e:
        msg = "invalid data character in encoding"
        raise ValueError(msg) from e

    if bech32_polymod(bech32_hrp_expand(hrp) + data) != BECH32M_CONST:
        msg = "invalid Bech32m checksum"
        raise ValueError(msg)
    return hrp, data[:-CHECKSUM_LEN]


def bech32m_encode(hrp: str, data: list[int]) -> str:
    """Encode 5-bit words as a Bech32m string of any length."""
    polymod = (
        bech32_polymod(bech32_hrp_expand(hrp) + data + [0] * CHECKSUM_LEN)
        ^ BECH32M_CONST
    )
    checksum = [
        (polymod >> 5 * (CHECKSUM_LEN - 1 - i)) & 31 for i in range(CHECKSUM_LEN)
    ]
    combined = data + checksum
    return hrp + "1" + "".join(CHARSET[word] for word in combined)


# ---------------------------------------------------------------------------
# Unified encodings
# ---------------------------------------------------------------------------


def _padding(hrp: str) -> bytes:
    encoded = hrp.encode("ascii")
    if len(encoded) > PADDING_LEN:
        msg = f"HRP {hrp!r} is longer than {PADDING_LEN} bytes"
        raise ValueError(msg)
    return encoded.ljust(PADDING_LEN, b"\x00")


def decode_unified(text: str, expected_hrp: str) -> list[UnifiedItem]:
    """Decode a unified encoding and return its items.

    Raises:
        ValueError: On any checksum, HRP, padding, or item error.
    """
    hrp, words = bech32m_decode(text.strip())
    if hrp != expected_hrp:
        msg = f"expected HRP {expected_hrp!r}, got {hrp!r}"
        raise ValueError(msg)

    unpacked = convertbits(words, 5, 8, False)
    if unpacked is None:
        msg = "invalid padding in 5-bit data"
        raise ValueError(msg)

    raw = f4jumble_inv(bytes(unpacked))
    if raw[-PADDING_LEN:] != _padding(hrp):
        msg = "invalid HRP padding"
        raise ValueError(msg)
    return parse_items(raw[:-PADDING_LEN])


def encode_unified(hrp: str, items: list[UnifiedItem]) -> str:
    """Encode items as a unified string with the given HRP."""
    raw = encode_items(items) + _padding(hrp)
    words = convertbits(list(f4jumble(raw)), 8, 5, True)
    return bech32m_encode(hrp, words)


__all__ = [
    "BECH32M_CONST",
    "PADDING_LEN",
    "UFVK_HRPS",
    "Typecode",
    "UnifiedItem",
    "bech32m_decode",
    "bech32m_encode",
    "decode_unified",
    "encode_items",
    "encode_unified",
    "f4jumble",
    "f4jumble_inv",
    "parse_items",
    "read_compact_size",
    "write_compact_size",
]
