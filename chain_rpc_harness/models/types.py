"""Annotated field types for hex-encoded node values."""

from typing import Annotated, Any

from pydantic import AfterValidator, BeforeValidator, PlainSerializer

HASH_LENGTH = 32


def decode_hex(value: Any) -> bytes:
    """Decode a ``0x``-prefixed hex string into bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str) or not value[:2].lower() == "0x":
        raise ValueError(f"expected 0x-prefixed hex string, got {value!r}")
    return bytes.fromhex(value[2:])


def encode_hex(value: bytes) -> str:
    """Encode bytes as a ``0x``-prefixed hex string."""
    return "0x" + value.hex()


def check_hash_length(value: bytes) -> bytes:
    """Reject digests that are not exactly 32 bytes."""
    if len(value) != HASH_LENGTH:
        raise ValueError(f"expected {HASH_LENGTH}-byte hash, got {len(value)} bytes")
    return value


def decode_hash(value: Any) -> bytes:
    """Decode and length-check a block or extrinsic hash."""
    return check_hash_length(decode_hex(value))


def decode_number(value: Any) -> int:
    """Decode a block number, sent either as hex string or as integer."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value[:2].lower() == "0x" else int(value)
    raise ValueError(f"expected block number, got {value!r}")


HexBytes = Annotated[
    bytes,
    BeforeValidator(decode_hex),
    PlainSerializer(encode_hex, return_type=str, when_used="json"),
]

Hash32 = Annotated[HexBytes, AfterValidator(check_hash_length)]

HexNumber = Annotated[
    int,
    BeforeValidator(decode_number),
    PlainSerializer(hex, return_type=str, when_used="json"),
]
