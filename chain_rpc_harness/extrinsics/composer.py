"""Composition and signing of extrinsics through an external codec library."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.errors import NodeConnectionError, SubmissionError
from chain_rpc_harness.models.extrinsic import SignedExtrinsic

log = logging.getLogger(__name__)


class ExtrinsicComposer(ABC):
    """Builds calls and signed extrinsics against the node's runtime metadata.

    Implementations own the codec; the harness only moves encoded bytes.
    """

    @abstractmethod
    async def has_call(self, module: str, function: str) -> bool:
        """Check whether the node's call table contains ``module.function``."""

    @abstractmethod
    async def compose_call(
        self, module: str, function: str, params: Mapping[str, Any]
    ) -> Any:
        """Build a call object; calls may be nested as parameters of other calls."""

    @abstractmethod
    async def sign(self, call: Any, signer: Keypair) -> SignedExtrinsic:
        """Sign ``call`` with ``signer`` and return the encoded extrinsic.

        Raises:
            SubmissionError: If the extrinsic cannot be signed

        """


@dataclass(frozen=True, kw_only=True)
class SubstrateComposer(ExtrinsicComposer):
    """Composer backed by ``substrate-interface``.

    The library is synchronous, so every call is offloaded to a worker thread.
    """

    substrate: SubstrateInterface = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: HarnessConfig
    ) -> AsyncGenerator["SubstrateComposer", None]:
        """Create composer with managed library connection."""
        try:
            substrate = await asyncio.to_thread(SubstrateInterface, url=config.endpoint)
        except (ConnectionError, OSError) as exc:
            raise NodeConnectionError(
                f"Composer failed to connect to {config.endpoint}: {exc}"
            ) from exc

        try:
            yield cls(substrate=substrate)
        finally:
            await asyncio.to_thread(substrate.close)

    async def has_call(self, module: str, function: str) -> bool:
        call_function = await asyncio.to_thread(
            self.substrate.get_metadata_call_function, module, function
        )
        return call_function is not None

    async def compose_call(
        self, module: str, function: str, params: Mapping[str, Any]
    ) -> Any:
        return await asyncio.to_thread(
            self.substrate.compose_call,
            call_module=module,
            call_function=function,
            call_params=dict(params),
        )

    async def sign(self, call: Any, signer: Keypair) -> SignedExtrinsic:
        try:
            extrinsic = await asyncio.to_thread(
                self.substrate.create_signed_extrinsic, call=call, keypair=signer
            )
        except (SubstrateRequestException, ValueError) as exc:
            raise SubmissionError(f"Failed to sign extrinsic: {exc}") from exc

        log.debug("Signed extrinsic for %s", signer.ss58_address)
        return SignedExtrinsic(
            data=bytes(extrinsic.data.data),
            extrinsic_hash=bytes(extrinsic.extrinsic_hash),
        )
