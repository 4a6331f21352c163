"""
balances.utils.felt
===================

Helpers around Starknet field elements as they appear at the package edges:

- Hex parsing/formatting of keys (`parse_key`, `to_felt`, `to_hex`, `to_padded_hex`)
- The 32-byte big-endian encoding used by storage-log keys (`to_be32`)
- Storage value decoding (`decode_value`), strict: raises ValueDecodeError

Keys are plain Python ints. The storage log keeps contract addresses, storage
keys and values as big-endian BLOBs (normally 32 bytes, shorter when the
writer trimmed leading zeros).

Examples
--------
>>> parse_key("0x3e8")
1000
>>> parse_key(hex(STARK_PRIME + 5))
5
>>> to_be32(1000)[-2:]
b'\\x03\\xe8'
>>> len(to_padded_hex(1000))
64
"""

from __future__ import annotations

from typing import Union

from ..constants import FELT_BYTES, MAX_KEY, STARK_PRIME
from ..errors import ValueDecodeError

KeyLike = Union[int, str]


def strip0x(s: str) -> str:
    return s[2:] if s.startswith(("0x", "0X")) else s


def parse_key(raw: KeyLike) -> int:
    """
    Parse a key from an int or a hex string (with or without 0x) and reduce
    it to a field element (see `to_felt`).

    Raises ValueError on anything else; callers wrap it into the
    account/token flavoured InputError.
    """
    if isinstance(raw, bool):
        raise ValueError("booleans are not keys")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        h = strip0x(raw.strip())
        if not h:
            raise ValueError("empty hex string")
        try:
            value = int(h, 16)
        except ValueError as e:
            raise ValueError(f"invalid hex string: {raw!r}") from e
    else:
        raise ValueError(f"unsupported key type {type(raw).__name__}")
    return to_felt(value)


def check_key(value: int) -> int:
    if value < 0 or value > MAX_KEY:
        raise ValueError(f"key out of 256-bit range: {value}")
    return value


def to_felt(value: int) -> int:
    """
    Range-check a 256-bit key and reduce it modulo STARK_PRIME.

    Keys at or above the prime name the same felt as their residue, which
    is what the hash takes and what the storage log records.
    """
    return check_key(value) % STARK_PRIME


def to_hex(value: int) -> str:
    """Minimal lowercase 0x hex (field element serialization)."""
    return hex(value)


def to_padded_hex(value: int) -> str:
    # '#064x' counts the 0x prefix in the width, i.e. 62 hex digits minimum.
    return format(value, "#064x")


def to_be32(value: int) -> bytes:
    """Encode a key as the 32-byte big-endian BLOB used by the storage log."""
    return check_key(value).to_bytes(FELT_BYTES, "big")



def decode_value(raw: object) -> int:
    """
    Decode a storage value into a field element.

    Accepts BLOBs (big-endian, at most 32 bytes) and TEXT holding hex.
    Empty BLOBs, oversized BLOBs, non-hex text and values >= STARK_PRIME are
    rejected with ValueDecodeError.
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
        if not data:
            raise ValueDecodeError("empty storage value")
        if len(data) > FELT_BYTES:
            raise ValueDecodeError(
                "storage value wider than a felt", data={"length": len(data)}
            )
        value = int.from_bytes(data, "big")
    elif isinstance(raw, str):
        try:
            value = int(strip0x(raw.strip()), 16)
        except ValueError as e:
            raise ValueDecodeError("storage value is not hex", data={"value": raw}) from e
    elif isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    else:
        raise ValueDecodeError(
            "unsupported storage value type", data={"type": type(raw).__name__}
        )
    if value < 0 or value >= STARK_PRIME:
        raise ValueDecodeError("storage value outside the field", data={"value": value})
    return value


__all__ = [
    "strip0x",
    "parse_key",
    "check_key",
    "to_felt",
    "to_hex",
    "to_padded_hex",
    "to_be32",
    "decode_value",
]
