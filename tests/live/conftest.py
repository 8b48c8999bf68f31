"""Fixtures for live checks against a real node.

Set ``CHAIN_RPC_ENDPOINT`` to check an existing node; otherwise a Westend
dev node is started in a container.
"""

import asyncio
import os
from collections.abc import Generator, Sequence

import pytest
from testcontainers.core import testcontainers_config
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.errors import NodeConnectionError
from chain_rpc_harness.models.result import CheckResult
from chain_rpc_harness.runner import Harness
from chain_rpc_harness.suites.westend import westend_manifest

NODE_IMAGE = "parity/polkadot:latest"
RPC_PORT = 9944


@pytest.fixture(scope="session", autouse=True)
def _disable_ryuk() -> None:
    """Disable the extra cleanup instance, we use contexts to clean containers."""
    testcontainers_config.ryuk_disabled = True


@pytest.fixture(scope="session")
def node_endpoint() -> Generator[str, None, None]:
    """Endpoint of the node under test."""
    if endpoint := os.environ.get("CHAIN_RPC_ENDPOINT"):
        yield endpoint
        return

    container = (
        DockerContainer(NODE_IMAGE)
        .with_command(
            f"--chain=westend-dev --alice --tmp --rpc-external --rpc-port={RPC_PORT}"
        )
        .with_exposed_ports(RPC_PORT)
    )
    with container as node:
        wait_for_logs(node, "Running JSON-RPC server", timeout=120)
        host = node.get_container_host_ip()
        yield f"ws://{host}:{node.get_exposed_port(RPC_PORT)}"


@pytest.fixture(scope="session")
def westend_results(node_endpoint: str) -> Sequence[CheckResult]:
    """Run the whole Westend suite once and share the results."""
    config = HarnessConfig.from_env().model_copy(update={"endpoint": node_endpoint})
    harness = Harness(config=config)

    async def _run() -> Sequence[CheckResult]:
        async with harness.session() as context:
            return await harness.run_checks(context, westend_manifest.checks())

    try:
        return asyncio.run(_run())
    except NodeConnectionError as exc:
        pytest.exit(f"Cannot reach node: {exc}", returncode=1)
