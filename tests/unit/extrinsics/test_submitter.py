"""Tests for extrinsic submission."""

from collections.abc import Sequence
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from chain_rpc_harness.errors import RpcError, SubmissionError, UnsupportedCallError
from chain_rpc_harness.extrinsics.composer import ExtrinsicComposer
from chain_rpc_harness.extrinsics.submitter import (
    ExtrinsicStatusStream,
    ExtrinsicSubmitter,
    read_runtime_code,
)
from chain_rpc_harness.models.extrinsic import SignedExtrinsic, StatusKind
from chain_rpc_harness.rpc.client import ChainClient

BLOCK_HASH = "0x" + "cd" * 32
EXTRINSIC_HASH = b"\xab" * 32


class ScriptedSubscription:
    """Subscription stand-in that yields canned status payloads."""

    def __init__(self, items: Sequence[Any]) -> None:
        self.items = list(items)
        self.unsubscribed = False

    def __aiter__(self) -> "ScriptedSubscription":
        return self

    async def __anext__(self) -> Any:
        if self.unsubscribed or not self.items:
            raise StopAsyncIteration
        return self.items.pop(0)

    async def unsubscribe(self) -> None:
        self.unsubscribed = True


@pytest.fixture
def client_mock() -> Mock:
    """Create mock client."""
    return Mock(spec=ChainClient)


@pytest.fixture
def composer_mock() -> Mock:
    """Create mock composer that knows every call."""
    composer = Mock(spec=ExtrinsicComposer)
    composer.has_call.return_value = True
    composer.compose_call.side_effect = lambda module, function, params: (
        f"{module}.{function}",
        params,
    )
    composer.sign.return_value = SignedExtrinsic(
        data=b"\x01\x02", extrinsic_hash=EXTRINSIC_HASH
    )
    return composer


@pytest.fixture
def submitter(client_mock: Mock, composer_mock: Mock) -> ExtrinsicSubmitter:
    """Create submitter over mocks."""
    return ExtrinsicSubmitter(client=client_mock, composer=composer_mock)


@pytest.fixture
def signer() -> Mock:
    """Create stand-in key pair."""
    return Mock(ss58_address="5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY")


class TestExtrinsicStatusStream:
    """Tests for ExtrinsicStatusStream."""

    async def test_yields_statuses_until_terminal(self) -> None:
        """Stops after the first terminal status and stops watching."""
        subscription = ScriptedSubscription(
            ["ready", {"inBlock": BLOCK_HASH}, {"finalized": BLOCK_HASH}, "ready"]
        )
        stream = ExtrinsicStatusStream(subscription)

        kinds = [status.kind async for status in stream]

        assert kinds == [StatusKind.SUBMITTED, StatusKind.IN_BLOCK, StatusKind.FINALIZED]
        assert subscription.unsubscribed

    async def test_skips_regressions(self) -> None:
        """Drops a status that would move the extrinsic backward."""
        subscription = ScriptedSubscription(
            [
                "ready",
                {"inBlock": BLOCK_HASH},
                {"retracted": BLOCK_HASH},
                {"inBlock": BLOCK_HASH},
                {"finalized": BLOCK_HASH},
            ]
        )
        stream = ExtrinsicStatusStream(subscription)

        kinds = [status.kind async for status in stream]

        assert kinds == [
            StatusKind.SUBMITTED,
            StatusKind.IN_BLOCK,
            StatusKind.IN_BLOCK,
            StatusKind.FINALIZED,
        ]
        assert [status.kind for status in stream.history] == kinds

    async def test_wait_for_returns_matching_status(self) -> None:
        """Returns the awaited status and stops watching early."""
        subscription = ScriptedSubscription(
            ["ready", {"inBlock": BLOCK_HASH}, {"finalized": BLOCK_HASH}]
        )
        stream = ExtrinsicStatusStream(subscription)

        status = await stream.wait_for(StatusKind.IN_BLOCK)

        assert status.block_hash == b"\xcd" * 32
        assert subscription.unsubscribed

    async def test_wait_for_raises_on_other_terminal_status(self) -> None:
        """Raises SubmissionError when the extrinsic ends differently."""
        stream = ExtrinsicStatusStream(ScriptedSubscription(["ready", "invalid"]))

        with pytest.raises(SubmissionError, match="invalid"):
            await stream.wait_for(StatusKind.FINALIZED)

    async def test_wait_for_raises_when_stream_ends_early(self) -> None:
        """Raises SubmissionError when updates stop before a terminal status."""
        stream = ExtrinsicStatusStream(ScriptedSubscription(["ready"]))

        with pytest.raises(SubmissionError, match="submitted"):
            await stream.wait_for(StatusKind.FINALIZED)


class TestSubmitTransfer:
    """Tests for submit_transfer."""

    async def test_submits_signed_transfer(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Composes the primary transfer call, signs it and submits the bytes."""
        client_mock.submit_extrinsic.return_value = EXTRINSIC_HASH

        extrinsic_hash = await submitter.submit_transfer(signer, "5FHneW46", 12345)

        assert extrinsic_hash == EXTRINSIC_HASH
        composer_mock.compose_call.assert_called_once_with(
            "Balances", "transfer_allow_death", {"dest": "5FHneW46", "value": 12345}
        )
        composer_mock.sign.assert_called_once_with(
            ("Balances.transfer_allow_death", {"dest": "5FHneW46", "value": 12345}),
            signer,
        )
        client_mock.submit_extrinsic.assert_called_once_with(b"\x01\x02")

    async def test_uses_legacy_transfer(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Falls back to Balances.transfer on older runtimes."""
        composer_mock.has_call.side_effect = [False, True]
        client_mock.submit_extrinsic.return_value = EXTRINSIC_HASH

        await submitter.submit_transfer(signer, "5FHneW46", 1)

        assert composer_mock.compose_call.call_args.args[:2] == ("Balances", "transfer")

    async def test_resolves_call_path_once(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Caches the resolved call path for later submissions."""
        client_mock.submit_extrinsic.return_value = EXTRINSIC_HASH

        await submitter.submit_transfer(signer, "5FHneW46", 1)
        await submitter.submit_transfer(signer, "5FHneW46", 2)

        composer_mock.has_call.assert_called_once()

    async def test_wraps_node_rejection(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        signer: Mock,
    ) -> None:
        """Turns an RPC error into SubmissionError."""
        client_mock.submit_extrinsic.side_effect = RpcError(
            code=1010, message="Invalid Transaction"
        )

        with pytest.raises(SubmissionError, match="Invalid Transaction"):
            await submitter.submit_transfer(signer, "5FHneW46", 1)

    async def test_raises_when_runtime_has_no_transfer(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Raises UnsupportedCallError without submitting anything."""
        composer_mock.has_call.return_value = False

        with pytest.raises(UnsupportedCallError):
            await submitter.submit_transfer(signer, "5FHneW46", 1)

        client_mock.submit_extrinsic.assert_not_called()


class TestSubmitRuntimeUpgrade:
    """Tests for submit_runtime_upgrade."""

    async def test_wraps_set_code_in_sudo(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Submits System.set_code through Sudo.sudo and watches it."""
        client_mock.submit_and_watch_extrinsic.return_value = ScriptedSubscription(
            ["ready", {"inBlock": BLOCK_HASH}, {"finalized": BLOCK_HASH}]
        )

        stream = await submitter.submit_runtime_upgrade(signer, b"\x00asm")
        status = await stream.wait_for(StatusKind.FINALIZED)

        assert status.kind is StatusKind.FINALIZED
        inner_call = ("System.set_code", {"code": "0x0061736d"})
        assert composer_mock.compose_call.call_args_list[-1].args == (
            "Sudo",
            "sudo",
            {"call": inner_call},
        )
        client_mock.submit_and_watch_extrinsic.assert_called_once_with(b"\x01\x02")

    async def test_falls_back_to_consensus_set_code(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        composer_mock: Mock,
        signer: Mock,
    ) -> None:
        """Uses Consensus.set_code when System.set_code is missing."""
        composer_mock.has_call.side_effect = [False, True]
        client_mock.submit_and_watch_extrinsic.return_value = ScriptedSubscription([])

        await submitter.submit_runtime_upgrade(signer, b"\x00asm")

        assert composer_mock.compose_call.call_args_list[0].args[:2] == (
            "Consensus",
            "set_code",
        )

    async def test_wraps_node_rejection(
        self,
        submitter: ExtrinsicSubmitter,
        client_mock: Mock,
        signer: Mock,
    ) -> None:
        """Turns an RPC error on submission into SubmissionError."""
        client_mock.submit_and_watch_extrinsic.side_effect = RpcError(
            code=1010, message="Invalid Transaction"
        )

        with pytest.raises(SubmissionError):
            await submitter.submit_runtime_upgrade(signer, b"\x00asm")


def test_read_runtime_code(tmp_path: Path) -> None:
    """Reads the runtime blob as bytes."""
    wasm = tmp_path / "runtime.wasm"
    wasm.write_bytes(b"\x00asm\x01\x00\x00\x00")

    assert read_runtime_code(wasm) == b"\x00asm\x01\x00\x00\x00"
