"""Per-run state handed to every check."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from dataclasses import dataclass, field

from substrateinterface import Keypair

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.extrinsics.composer import ExtrinsicComposer
from chain_rpc_harness.extrinsics.submitter import ExtrinsicSubmitter
from chain_rpc_harness.rpc.client import ChainClient
from chain_rpc_harness.transport import Connection

type ComposerFactory = Callable[
    [HarnessConfig], AbstractAsyncContextManager[ExtrinsicComposer]
]


@dataclass(kw_only=True)
class HarnessContext:
    """Connection, client and lazily opened submitter for one harness session.

    Everything opened through the context is released when the session that
    created it exits.
    """

    config: HarnessConfig
    connection: Connection
    client: ChainClient
    composer_factory: ComposerFactory = field(repr=False)
    exit_stack: AsyncExitStack = field(repr=False)
    _submitter: ExtrinsicSubmitter | None = field(default=None, init=False, repr=False)

    async def submitter(self) -> ExtrinsicSubmitter:
        """Return the submitter, opening its composer on first use."""
        if self._submitter is None:
            composer = await self.exit_stack.enter_async_context(
                self.composer_factory(self.config)
            )
            self._submitter = ExtrinsicSubmitter(client=self.client, composer=composer)
        return self._submitter

    def signer(self) -> Keypair:
        """Key pair derived from the configured signer URI."""
        return Keypair.create_from_uri(self.config.signer_uri.get_secret_value())
