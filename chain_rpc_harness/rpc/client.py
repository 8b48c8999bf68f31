"""Typed client for the node RPC methods the harness exercises."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError, version

from chain_rpc_harness.models.chain import (
    ChainHeader,
    ChainType,
    FinalityProof,
    RuntimeMetadata,
    RuntimeVersion,
    SignedBlock,
    StorageChangeSet,
    SystemHealth,
    SystemProperties,
)
from chain_rpc_harness.models.types import decode_hash, decode_hex, encode_hex
from chain_rpc_harness.rpc.channel import Callback, RpcChannel, Subscription

log = logging.getLogger(__name__)

DISTRIBUTION_NAME = "chain-rpc-harness"


def library_info() -> str:
    """Name and version of this client, e.g. ``chain-rpc-harness v0.1.0``."""
    try:
        return f"{DISTRIBUTION_NAME} v{version(DISTRIBUTION_NAME)}"
    except PackageNotFoundError:
        return f"{DISTRIBUTION_NAME} vunknown"


def _hash_param(block_hash: bytes | None) -> list[str]:
    return [] if block_hash is None else [encode_hex(block_hash)]


@dataclass(kw_only=True)
class ChainClient:
    """RPC facade over a running channel.

    The runtime version is fetched once per connection and cached; pass
    ``refresh=True`` after a runtime upgrade.
    """

    channel: RpcChannel
    _runtime_version: RuntimeVersion | None = field(default=None, init=False, repr=False)

    def library_info(self) -> str:
        return library_info()

    async def genesis_hash(self) -> bytes:
        return await self.get_block_hash(0)

    async def runtime_version(self, *, refresh: bool = False) -> RuntimeVersion:
        if self._runtime_version is None or refresh:
            result = await self.channel.call("state_getRuntimeVersion")
            self._runtime_version = RuntimeVersion.model_validate(result)
        return self._runtime_version

    async def runtime_metadata(self) -> RuntimeMetadata:
        result = await self.channel.call("state_getMetadata")
        return RuntimeMetadata(raw=result)

    async def system_chain(self) -> str:
        return await self.channel.call("system_chain")

    async def system_name(self) -> str:
        return await self.channel.call("system_name")

    async def system_version(self) -> str:
        return await self.channel.call("system_version")

    async def system_properties(self) -> SystemProperties:
        result = await self.channel.call("system_properties")
        return SystemProperties.model_validate(result)

    async def system_chain_type(self) -> ChainType:
        result = await self.channel.call("system_chainType")
        return ChainType.model_validate(result)

    async def system_health(self) -> SystemHealth:
        result = await self.channel.call("system_health")
        return SystemHealth.model_validate(result)

    async def get_header(self, block_hash: bytes | None = None) -> ChainHeader:
        result = await self.channel.call("chain_getHeader", _hash_param(block_hash))
        return ChainHeader.model_validate(result)

    async def get_block(self, block_hash: bytes | None = None) -> SignedBlock:
        result = await self.channel.call("chain_getBlock", _hash_param(block_hash))
        return SignedBlock.model_validate(result)

    async def get_block_hash(self, block_number: int | None = None) -> bytes:
        params = [] if block_number is None else [block_number]
        result = await self.channel.call("chain_getBlockHash", params)
        return decode_hash(result)

    async def get_finalized_head(self) -> bytes:
        result = await self.channel.call("chain_getFinalizedHead")
        return decode_hash(result)

    async def subscribe_new_heads(
        self, on_header: Callback[ChainHeader] | None = None
    ) -> Subscription[ChainHeader]:
        """Subscribe to new best-block headers.

        Without ``on_header`` the subscription is consumed as an async
        iterator; with it, headers are pushed to the callback in order.
        """
        subscription = await self.channel.subscribe(
            "chain_subscribeNewHeads",
            unsubscribe_method="chain_unsubscribeNewHeads",
            parse=ChainHeader.model_validate,
        )
        if on_header is not None:
            subscription.listen(on_header)
        return subscription

    async def subscribe_finalized_heads(
        self, on_header: Callback[ChainHeader] | None = None
    ) -> Subscription[ChainHeader]:
        subscription = await self.channel.subscribe(
            "chain_subscribeFinalizedHeads",
            unsubscribe_method="chain_unsubscribeFinalizedHeads",
            parse=ChainHeader.model_validate,
        )
        if on_header is not None:
            subscription.listen(on_header)
        return subscription

    async def get_storage(self, key: bytes, at: bytes | None = None) -> bytes | None:
        result = await self.channel.call(
            "state_getStorage", [encode_hex(key), *_hash_param(at)]
        )
        return None if result is None else decode_hex(result)

    async def query_storage(
        self, keys: Sequence[bytes], at: bytes, to: bytes | None = None
    ) -> Sequence[StorageChangeSet]:
        """Storage changes for ``keys`` from block ``at`` up to ``to`` (or best)."""
        params = [[encode_hex(key) for key in keys], encode_hex(at), *_hash_param(to)]
        result = await self.channel.call("state_queryStorage", params)
        return [StorageChangeSet.model_validate(item) for item in result]

    async def prove_finality(self, block_number: int) -> FinalityProof:
        result = await self.channel.call("grandpa_proveFinality", [block_number])
        return FinalityProof(block_number=block_number, proof=result)

    async def submit_extrinsic(self, data: bytes) -> bytes:
        result = await self.channel.call("author_submitExtrinsic", [encode_hex(data)])
        return decode_hash(result)

    async def submit_and_watch_extrinsic(self, data: bytes) -> Subscription[object]:
        """Submit and subscribe to raw status updates for the extrinsic."""
        return await self.channel.subscribe(
            "author_submitAndWatchExtrinsic",
            [encode_hex(data)],
            unsubscribe_method="author_unwatchExtrinsic",
            parse=lambda status: status,
        )
