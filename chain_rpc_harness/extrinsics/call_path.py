"""Call paths with a legacy fallback, resolved against the node's call table."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from chain_rpc_harness.errors import UnsupportedCallError
from chain_rpc_harness.extrinsics.composer import ExtrinsicComposer

log = logging.getLogger(__name__)


class CallVariant(StrEnum):
    """Which candidate of a call path the node supports."""

    PRIMARY = "primary"
    LEGACY = "legacy"


@dataclass(frozen=True, kw_only=True)
class CallPath:
    """A pallet call, e.g. ``System.set_code``."""

    module: str
    function: str
    variant: CallVariant

    def __str__(self) -> str:
        return f"{self.module}.{self.function}"


SET_CODE_PATHS = (
    CallPath(module="System", function="set_code", variant=CallVariant.PRIMARY),
    CallPath(module="Consensus", function="set_code", variant=CallVariant.LEGACY),
)

TRANSFER_PATHS = (
    CallPath(module="Balances", function="transfer_allow_death", variant=CallVariant.PRIMARY),
    CallPath(module="Balances", function="transfer", variant=CallVariant.LEGACY),
)

SUDO_PATH = CallPath(module="Sudo", function="sudo", variant=CallVariant.PRIMARY)


async def resolve_call_path(
    composer: ExtrinsicComposer, candidates: Sequence[CallPath]
) -> CallPath:
    """Return the first candidate present in the node's call table.

    Raises:
        UnsupportedCallError: If no candidate is present

    """
    for candidate in candidates:
        if await composer.has_call(candidate.module, candidate.function):
            log.info("Resolved call path %s (%s)", candidate, candidate.variant)
            return candidate
    raise UnsupportedCallError([str(candidate) for candidate in candidates])
