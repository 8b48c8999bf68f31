"""Submission of signed extrinsics and tracking of their status."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from substrateinterface import Keypair

from chain_rpc_harness.errors import RpcError, SubmissionError
from chain_rpc_harness.extrinsics.call_path import (
    SET_CODE_PATHS,
    SUDO_PATH,
    TRANSFER_PATHS,
    CallPath,
    resolve_call_path,
)
from chain_rpc_harness.extrinsics.composer import ExtrinsicComposer
from chain_rpc_harness.models.extrinsic import ExtrinsicStatus, StatusKind
from chain_rpc_harness.models.types import encode_hex
from chain_rpc_harness.rpc.channel import Subscription
from chain_rpc_harness.rpc.client import ChainClient

log = logging.getLogger(__name__)


def read_runtime_code(path: Path) -> bytes:
    """Read a compiled runtime WASM blob."""
    code = path.read_bytes()
    log.info("Read runtime code from %s (%d bytes)", path, len(code))
    return code


class ExtrinsicStatusStream:
    """Status transitions of one watched extrinsic.

    Transitions are delivered in non-decreasing order; a status that would
    move backward (e.g. a retraction after inclusion) is skipped. The stream
    ends after the first terminal status and stops watching the extrinsic.
    """

    def __init__(self, subscription: Subscription[Any]) -> None:
        self._subscription = subscription
        self._last: ExtrinsicStatus | None = None
        self.history: list[ExtrinsicStatus] = []

    def __aiter__(self) -> "ExtrinsicStatusStream":
        return self

    async def __anext__(self) -> ExtrinsicStatus:
        if self._last is not None and self._last.is_terminal:
            raise StopAsyncIteration

        async for payload in self._subscription:
            status = ExtrinsicStatus.from_rpc(payload)
            if self._last is not None and status.rank < self._last.rank:
                log.warning(
                    "Skipping status %s after %s", status.kind, self._last.kind
                )
                continue

            self._last = status
            self.history.append(status)
            log.info("Extrinsic status: %s", status.kind)
            if status.is_terminal:
                await self._subscription.unsubscribe()
            return status

        raise StopAsyncIteration

    async def wait_for(self, kind: StatusKind) -> ExtrinsicStatus:
        """Consume the stream until ``kind`` is reached.

        Raises:
            SubmissionError: If the stream ends in a different terminal status

        """
        async for status in self:
            if status.kind is kind:
                if not status.is_terminal:
                    await self.close()
                return status
        raise SubmissionError(
            f"Extrinsic ended as {self._last.kind if self._last else 'nothing'}, "
            f"expected {kind}"
        )

    async def close(self) -> None:
        await self._subscription.unsubscribe()


@dataclass(frozen=True, kw_only=True)
class ExtrinsicSubmitter:
    """Builds, signs and submits extrinsics.

    Call paths are resolved once per submitter against the live call table.
    The submitter holds non-owning references to the client and composer.
    """

    client: ChainClient
    composer: ExtrinsicComposer
    _resolved: dict[tuple[CallPath, ...], CallPath] = field(
        default_factory=dict, init=False, repr=False
    )

    async def resolve(self, candidates: Sequence[CallPath]) -> CallPath:
        key = tuple(candidates)
        if key not in self._resolved:
            self._resolved[key] = await resolve_call_path(self.composer, key)
        return self._resolved[key]

    async def submit_transfer(self, signer: Keypair, dest: str, amount: int) -> bytes:
        """Transfer ``amount`` to ``dest`` and return the extrinsic hash.

        Raises:
            SubmissionError: If signing fails or the node rejects the extrinsic
            UnsupportedCallError: If the runtime has no known transfer call

        """
        path = await self.resolve(TRANSFER_PATHS)
        call = await self.composer.compose_call(
            path.module, path.function, {"dest": dest, "value": amount}
        )
        extrinsic = await self.composer.sign(call, signer)

        log.info("Submitting %s of %d to %s", path, amount, dest)
        try:
            return await self.client.submit_extrinsic(extrinsic.data)
        except RpcError as exc:
            raise SubmissionError(f"Node rejected {path}: {exc}") from exc

    async def submit_sudo_call(
        self, signer: Keypair, inner_call: Any
    ) -> ExtrinsicStatusStream:
        """Wrap ``inner_call`` in ``Sudo.sudo`` and submit it with status watching.

        The returned stream is not awaited to finality; callers decide how far
        to follow it.
        """
        call = await self.composer.compose_call(
            SUDO_PATH.module, SUDO_PATH.function, {"call": inner_call}
        )
        extrinsic = await self.composer.sign(call, signer)

        log.info("Submitting %s as %s", SUDO_PATH, signer.ss58_address)
        try:
            subscription = await self.client.submit_and_watch_extrinsic(extrinsic.data)
        except RpcError as exc:
            raise SubmissionError(f"Node rejected {SUDO_PATH}: {exc}") from exc
        return ExtrinsicStatusStream(subscription)

    async def submit_runtime_upgrade(
        self, signer: Keypair, code: bytes
    ) -> ExtrinsicStatusStream:
        """Replace the runtime with ``code`` through sudo."""
        path = await self.resolve(SET_CODE_PATHS)
        inner_call = await self.composer.compose_call(
            path.module, path.function, {"code": encode_hex(code)}
        )
        return await self.submit_sudo_call(signer, inner_call)
