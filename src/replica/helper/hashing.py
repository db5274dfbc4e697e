# helper/hashing.py
from __future__ import annotations

from typing import Union

from Crypto.Hash import keccak

BytesLike = Union[bytes, bytearray, memoryview, str]

HASH_LENGTH = 32


def keccak256(*parts: bytes) -> bytes:
    """
    keccak-256 over the concatenation of `parts`.

    This is the Ethereum flavour of keccak (pre-NIST padding), not
    hashlib.sha3_256; the source chain hashes leaves and tree nodes with it.
    """
    k = keccak.new(digest_bits=256)
    for part in parts:
        k.update(bytes(part))
    return k.digest()


def to_bytes(value: BytesLike) -> bytes:
    """
    Normalize bytes or a hex string into raw bytes.

    - Accepts optional '0x' / '0X' prefix on strings.
    - Strips surrounding whitespace.
    - Raises ValueError if a string is not valid hex.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}: {value!r}")

    s = value.strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    try:
        return bytes.fromhex(s)
    except ValueError as exc:
        raise ValueError(f"Not a valid hex string: {value!r}") from exc


def to_bytes32(value: BytesLike) -> bytes:
    """Like to_bytes(), but the result must be exactly 32 bytes."""
    raw = to_bytes(value)
    if len(raw) != HASH_LENGTH:
        raise ValueError(f"Expected {HASH_LENGTH} bytes, got {len(raw)}")
    return raw


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()
