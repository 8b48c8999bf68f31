"""Fixtures for integration tests against an in-process fake node."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from unittest.mock import Mock

import pytest
from aiohttp.test_utils import TestServer
from yarl import URL

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.context import ComposerFactory
from chain_rpc_harness.extrinsics.composer import ExtrinsicComposer
from chain_rpc_harness.models.extrinsic import SignedExtrinsic
from chain_rpc_harness.rpc.channel import RpcChannel
from chain_rpc_harness.rpc.client import ChainClient
from chain_rpc_harness.testing.node import FakeNode
from chain_rpc_harness.transport import Connection, connect


@pytest.fixture
def node() -> FakeNode:
    """Create a fake Westend node."""
    return FakeNode()


@pytest.fixture
async def node_server(node: FakeNode) -> AsyncGenerator[TestServer, None]:
    """Serve the fake node on a local port."""
    async with TestServer(node.app()) as server:
        yield server


@pytest.fixture
def endpoint(node_server: TestServer) -> str:
    """WebSocket endpoint of the fake node."""
    return str(URL.build(scheme="ws", host=node_server.host, port=node_server.port, path="/"))


@pytest.fixture
async def connection(endpoint: str) -> AsyncGenerator[Connection, None]:
    """Open a connection to the fake node."""
    connection = await connect(endpoint, timeout=5.0)
    yield connection
    await connection.close()


@pytest.fixture
async def channel(connection: Connection) -> AsyncGenerator[RpcChannel, None]:
    """Create a running channel with a short call timeout."""
    channel = RpcChannel(connection=connection, timeout=1.0)
    channel.start()
    yield channel
    await channel.close()


@pytest.fixture
def client(channel: RpcChannel) -> ChainClient:
    """Create client over the running channel."""
    return ChainClient(channel=channel)


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
        data=b"\x04\x00\x01", extrinsic_hash=b"\xab" * 32
    )
    return composer


@pytest.fixture
def composer_factory(composer_mock: Mock) -> ComposerFactory:
    """Return a composer factory that yields the mock composer."""

    @asynccontextmanager
    async def _factory(config: HarnessConfig) -> AsyncGenerator[ExtrinsicComposer, None]:
        yield composer_mock

    return _factory
