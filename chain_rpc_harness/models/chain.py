"""Models for chain, state and system RPC responses."""

import hashlib
from collections.abc import Sequence
from typing import Any

from pydantic import ConfigDict, Field, model_validator

from chain_rpc_harness.models.base import Model, WireModel
from chain_rpc_harness.models.types import Hash32, HexBytes, HexNumber

METADATA_MAGIC = 0x6174656D  # "meta" read as a little-endian u32


def encode_compact(value: int) -> bytes:
    """SCALE compact encoding of a non-negative integer."""
    if value < 0:
        raise ValueError("compact integers must be non-negative")
    if value < 1 << 6:
        return (value << 2).to_bytes(1, "little")
    if value < 1 << 14:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < 1 << 30:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = (value.bit_length() + 7) // 8
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


class Digest(WireModel):
    """Header digest; each log is an already encoded digest item."""

    logs: Sequence[HexBytes] = Field(default_factory=list)


class ChainHeader(WireModel):
    """Block header as returned by ``chain_getHeader`` and head subscriptions."""

    parent_hash: Hash32
    number: HexNumber
    state_root: Hash32
    extrinsics_root: Hash32
    digest: Digest = Field(default_factory=Digest)

    def encode(self) -> bytes:
        """SCALE-encode the header in field order."""
        return b"".join(
            [
                self.parent_hash,
                encode_compact(self.number),
                self.state_root,
                self.extrinsics_root,
                encode_compact(len(self.digest.logs)),
                *self.digest.logs,
            ]
        )

    @property
    def hash(self) -> bytes:
        """Block hash: blake2b-256 of the encoded header."""
        return hashlib.blake2b(self.encode(), digest_size=32).digest()


class Block(WireModel):
    """Block body with its header."""

    header: ChainHeader
    extrinsics: Sequence[HexBytes] = Field(default_factory=list)


class SignedBlock(WireModel):
    """Response of ``chain_getBlock``."""

    block: Block
    justifications: Any = None


class RuntimeVersion(WireModel):
    """Response of ``state_getRuntimeVersion``."""

    spec_name: str
    impl_name: str = ""
    authoring_version: int = 0
    spec_version: int = 0
    impl_version: int = 0
    apis: Sequence[tuple[HexBytes, int]] = Field(default_factory=list)
    transaction_version: int = 0
    state_version: int = 0


class RuntimeMetadata(Model):
    """Opaque runtime metadata, checked for the ``meta`` prefix."""

    raw: HexBytes

    @model_validator(mode="after")
    def check_magic(self) -> "RuntimeMetadata":
        if len(self.raw) < 5:
            raise ValueError("metadata is too short to carry a prefix")
        if self.magic_number != METADATA_MAGIC:
            raise ValueError(f"bad metadata magic number {self.magic_number:#x}")
        return self

    @property
    def magic_number(self) -> int:
        return int.from_bytes(self.raw[:4], "little")

    @property
    def version(self) -> int:
        return self.raw[4]


class SystemProperties(WireModel):
    """Response of ``system_properties``."""

    model_config = ConfigDict(extra="allow")

    ss58_format: int | None = None
    token_decimals: int | Sequence[int] | None = None
    token_symbol: str | Sequence[str] | None = None


class ChainType(Model):
    """Response of ``system_chainType``."""

    kind: str
    custom_name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def from_rpc(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"kind": data}
        if isinstance(data, dict) and "Custom" in data:
            return {"kind": "Custom", "custom_name": data["Custom"]}
        return data

    @property
    def is_local(self) -> bool:
        return self.kind == "Local"

    @property
    def is_development(self) -> bool:
        return self.kind == "Development"

    @property
    def is_live(self) -> bool:
        return self.kind == "Live"


class SystemHealth(WireModel):
    """Response of ``system_health``."""

    peers: int
    is_syncing: bool
    should_have_peers: bool


class StorageChangeSet(WireModel):
    """One block's entry in a ``state_queryStorage`` response."""

    block: Hash32
    changes: Sequence[tuple[HexBytes, HexBytes | None]] = Field(default_factory=list)


class FinalityProof(Model):
    """Response of ``grandpa_proveFinality``; the proof itself stays encoded."""

    block_number: int
    proof: HexBytes | None = None
