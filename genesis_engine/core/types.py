"""Shared enums and primitive codecs used across the engine."""

from __future__ import annotations

import enum

from eth_utils import (
    decode_hex,
    encode_hex,
    is_hex_address,
    keccak,
    to_checksum_address,
    to_normalized_address,
)

from genesis_engine.core.errors import MalformedInputError

UINT64_MAX = 2**64 - 1
UINT128_MAX = 2**128 - 1
UINT256_MAX = 2**256 - 1

ZERO_ADDRESS = "0x" + "00" * 20


def keccak256(data: bytes) -> bytes:
    return keccak(primitive=data)


KECCAK_EMPTY = keccak256(b"")


# ── Enums ────────────────────────────────────────────────────────────────────


class SpecId(str, enum.Enum):
    """Protocol revision handed to the virtual machine."""

    LONDON = "london"
    PARIS = "paris"
    SHANGHAI = "shanghai"
    CANCUN = "cancun"
    PRAGUE = "prague"
    LATEST = "latest"


# ── Addresses ────────────────────────────────────────────────────────────────


def parse_address(value: str | bytes) -> str:
    """Return the lower-case ``0x`` form of a 20-byte address."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise MalformedInputError(f"Invalid address: 0x{bytes(value).hex()}", value=value)
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise MalformedInputError(f"Invalid address: {value!r}", value=value)
    candidate = value.strip()
    if not candidate.startswith(("0x", "0X")):
        candidate = "0x" + candidate
    if not is_hex_address(candidate):
        raise MalformedInputError(f"Invalid address: {value}", value=value)
    return to_normalized_address(candidate)


def checksum(address: str) -> str:
    """EIP-55 rendering used in emitted documents and logs."""
    return to_checksum_address(parse_address(address))


# ── Integers ─────────────────────────────────────────────────────────────────


def parse_uint(value: str | int, bits: int = 256) -> int:
    """Parse a decimal or ``0x`` hex string into an unsigned integer of ``bits`` width."""
    if isinstance(value, bool):
        raise MalformedInputError(f"Invalid u{bits} value: {value!r}", value=value)
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip().replace("_", "")
        try:
            if text.lower().startswith("0x"):
                number = int(text[2:], 16) if len(text) > 2 else 0
            else:
                number = int(text, 10)
        except ValueError as exc:
            raise MalformedInputError(f"Invalid u{bits} string: {value}", value=value) from exc
    else:
        raise MalformedInputError(f"Invalid u{bits} value: {value!r}", value=value)

    if number < 0 or number >= 2**bits:
        raise MalformedInputError(f"Value out of range for u{bits}: {value}", value=value)
    return number


def parse_uint256(value: str | int) -> int:
    return parse_uint(value, 256)


def parse_uint128(value: str | int) -> int:
    return parse_uint(value, 128)


def parse_hex_quantity(value: str | int | None) -> int:
    """Parse a hex quantity as found in genesis documents (``"0x"`` is zero)."""
    if value is None:
        return 0
    if isinstance(value, int):
        return parse_uint256(value)
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    if not text:
        return 0
    return parse_uint256("0x" + text)


def to_hex_quantity(value: int) -> str:
    return hex(value)


# ── Byte strings ─────────────────────────────────────────────────────────────


def parse_hex_bytes(value: str | None) -> bytes:
    """Decode a hex string, with or without ``0x``; empty input is ``b""``."""
    if value is None:
        return b""
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    if not text:
        return b""
    try:
        return decode_hex(text)
    except ValueError as exc:
        raise MalformedInputError(f"Invalid hex string: {value[:80]}", value=value[:80]) from exc


def to_hex_bytes(data: bytes) -> str:
    return encode_hex(data)


def truncate_hex(data: bytes, limit: int) -> str:
    """Hex-render at most ``limit`` bytes, marking truncation with an ellipsis."""
    if len(data) <= limit:
        return encode_hex(data)
    return encode_hex(data[:limit]) + "..."
