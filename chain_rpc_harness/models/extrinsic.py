"""Models for extrinsic submission."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from chain_rpc_harness.models.types import decode_hash


class StatusKind(StrEnum):
    """Lifecycle stage of a submitted extrinsic."""

    SUBMITTED = "submitted"
    IN_BLOCK = "in_block"
    FINALIZED = "finalized"
    DROPPED = "dropped"
    INVALID = "invalid"


TERMINAL_KINDS = frozenset([StatusKind.FINALIZED, StatusKind.DROPPED, StatusKind.INVALID])

# Node status names, grouped by the stage they map to.
_SUBMITTED_NAMES = frozenset(["future", "ready", "broadcast", "retracted"])
_DROPPED_NAMES = frozenset(["dropped", "usurped", "finalityTimeout"])


@dataclass(frozen=True, kw_only=True)
class ExtrinsicStatus:
    """One transition reported by ``author_extrinsicUpdate``."""

    kind: StatusKind
    block_hash: bytes | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @property
    def rank(self) -> int:
        if self.kind is StatusKind.SUBMITTED:
            return 0
        if self.kind is StatusKind.IN_BLOCK:
            return 1
        return 2

    @classmethod
    def from_rpc(cls, payload: Any) -> "ExtrinsicStatus":
        """Parse a node status, either a bare name or a single-key object.

        Raises:
            ValueError: If the status name is unknown

        """
        if isinstance(payload, str):
            name, value = payload, None
        elif isinstance(payload, dict) and len(payload) == 1:
            ((name, value),) = payload.items()
        else:
            raise ValueError(f"unrecognised extrinsic status {payload!r}")

        if name in _SUBMITTED_NAMES:
            return cls(kind=StatusKind.SUBMITTED)
        if name in _DROPPED_NAMES:
            return cls(kind=StatusKind.DROPPED)
        if name == "invalid":
            return cls(kind=StatusKind.INVALID)
        if name == "inBlock":
            return cls(kind=StatusKind.IN_BLOCK, block_hash=decode_hash(value))
        if name == "finalized":
            return cls(kind=StatusKind.FINALIZED, block_hash=decode_hash(value))
        raise ValueError(f"unrecognised extrinsic status {payload!r}")


@dataclass(frozen=True, kw_only=True)
class SignedExtrinsic:
    """Encoded, signed extrinsic ready for submission."""

    data: bytes
    extrinsic_hash: bytes
