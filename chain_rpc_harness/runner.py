"""Harness runner: connection acquisition, check execution and teardown."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable, Mapping, Sequence
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.context import ComposerFactory, HarnessContext
from chain_rpc_harness.errors import IllegalTransitionError, NodeConnectionError
from chain_rpc_harness.extrinsics.composer import SubstrateComposer
from chain_rpc_harness.models.result import CheckResult, CheckStatus
from chain_rpc_harness.rpc.channel import RpcChannel
from chain_rpc_harness.rpc.client import ChainClient
from chain_rpc_harness.suites.base import Check, CheckSkipped
from chain_rpc_harness.transport import Connection, connect

log = logging.getLogger(__name__)

type Connector = Callable[..., Awaitable[Connection]]


class HarnessState(StrEnum):
    """Lifecycle of a harness run."""

    INIT = "init"
    ACQUIRING_CONNECTION = "acquiring_connection"
    READY = "ready"
    TESTS_RUNNING = "tests_running"
    TEARING_DOWN = "tearing_down"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: Mapping[HarnessState, frozenset[HarnessState]] = {
    HarnessState.INIT: frozenset([HarnessState.ACQUIRING_CONNECTION]),
    HarnessState.ACQUIRING_CONNECTION: frozenset(
        [HarnessState.READY, HarnessState.FAILED]
    ),
    HarnessState.READY: frozenset(
        [HarnessState.TESTS_RUNNING, HarnessState.TEARING_DOWN]
    ),
    HarnessState.TESTS_RUNNING: frozenset([HarnessState.TEARING_DOWN]),
    HarnessState.TEARING_DOWN: frozenset([HarnessState.DONE]),
    HarnessState.DONE: frozenset(),
    HarnessState.FAILED: frozenset(),
}


@dataclass(kw_only=True)
class Harness:
    """Owns the node connection for one run and executes checks against it.

    Connection acquisition is the only place that retries. When every
    attempt fails the harness moves to FAILED and raises, and no check runs.
    """

    config: HarnessConfig
    connector: Connector = connect
    composer_factory: ComposerFactory = SubstrateComposer.from_config
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    state: HarnessState = field(default=HarnessState.INIT, init=False)

    def transition(self, new_state: HarnessState) -> None:
        """Move to ``new_state``.

        Raises:
            IllegalTransitionError: If ``new_state`` is not reachable from the current state

        """
        if new_state not in TRANSITIONS[self.state]:
            raise IllegalTransitionError(
                f"Cannot move harness from {self.state} to {new_state}"
            )
        log.debug("Harness state: %s -> %s", self.state, new_state)
        self.state = new_state

    async def acquire_connection(self) -> Connection:
        """Connect to the node, retrying ``connect_retries`` times.

        Raises:
            NodeConnectionError: If no attempt succeeds

        """
        self.transition(HarnessState.ACQUIRING_CONNECTION)
        attempts = self.config.connect_retries + 1
        error: NodeConnectionError | None = None

        for attempt in range(1, attempts + 1):
            try:
                connection = await self.connector(
                    self.config.endpoint, timeout=self.config.connect_timeout
                )
            except NodeConnectionError as exc:
                error = exc
                log.warning(
                    "Connection attempt %d/%d to %s failed: %s",
                    attempt,
                    attempts,
                    self.config.endpoint,
                    exc,
                )
                if attempt < attempts:
                    await self.sleep(self.config.retry_delay)
                continue

            await connection.wait_ready()
            self.transition(HarnessState.READY)
            return connection

        self.transition(HarnessState.FAILED)
        raise NodeConnectionError(
            f"Could not connect to {self.config.endpoint} after {attempts} attempt(s)"
        ) from error

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[HarnessContext, None]:
        """Acquire the connection and yield a context; tears down on exit."""
        connection = await self.acquire_connection()
        channel = RpcChannel(connection=connection, timeout=self.config.rpc_timeout)

        try:
            async with AsyncExitStack() as stack:
                stack.push_async_callback(connection.close)
                stack.push_async_callback(channel.close)
                channel.start()

                try:
                    yield HarnessContext(
                        config=self.config,
                        connection=connection,
                        client=ChainClient(channel=channel),
                        composer_factory=self.composer_factory,
                        exit_stack=stack,
                    )
                finally:
                    self.transition(HarnessState.TEARING_DOWN)
        finally:
            self.transition(HarnessState.DONE)
            log.info("Harness finished")

    async def run_checks(
        self, context: HarnessContext, checks: Sequence[Check]
    ) -> Sequence[CheckResult]:
        """Run checks one after another; a failing check does not stop the rest."""
        self.transition(HarnessState.TESTS_RUNNING)
        log.info("Running %d check(s) against %s", len(checks), self.config.endpoint)

        results: list[CheckResult] = []
        for check in checks:
            result = await self._run_check(context, check)
            log.info(
                "Check completed: name=%s status=%s duration=%.2fs",
                result.name,
                result.status,
                result.duration,
            )
            results.append(result)
        return results

    async def _run_check(self, context: HarnessContext, check: Check) -> CheckResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        timeout = check.timeout or self.config.check_timeout

        def result(status: CheckStatus, message: str | None = None) -> CheckResult:
            return CheckResult(
                name=check.name,
                group=check.group,
                status=status,
                duration=loop.time() - started,
                message=message,
            )

        try:
            async with asyncio.timeout(timeout):
                await check.run(context)
        except CheckSkipped as exc:
            return result("skipped", str(exc))
        except AssertionError as exc:
            return result("failure", str(exc) or "assertion failed")
        except TimeoutError as exc:
            return result("timeout", str(exc) or f"check exceeded {timeout} seconds")
        except Exception as exc:
            log.error("Check %s raised: %s", check.name, exc, exc_info=exc)
            return result("error", f"{type(exc).__name__}: {exc}")
        return result("success")
