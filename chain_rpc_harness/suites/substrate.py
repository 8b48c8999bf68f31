"""Checks shared by suites for Substrate-based chains."""

import logging
from collections.abc import Sequence
from functools import partial

from chain_rpc_harness.context import HarnessContext
from chain_rpc_harness.extrinsics.submitter import read_runtime_code
from chain_rpc_harness.models.chain import METADATA_MAGIC, ChainHeader
from chain_rpc_harness.models.extrinsic import StatusKind
from chain_rpc_harness.models.types import HASH_LENGTH, decode_hex
from chain_rpc_harness.rpc.client import DISTRIBUTION_NAME
from chain_rpc_harness.suites.base import (
    Check,
    CheckSkipped,
    expect,
    expect_at_least,
    expect_contains,
    expect_equal,
    expect_length,
)
from chain_rpc_harness.suites.manifest import ChainExpectations

log = logging.getLogger(__name__)

# twox128("Timestamp") ++ twox128("Now")
TIMESTAMP_NOW_KEY = decode_hex(
    "0xf0c365c3cf59d671eb72da0e7a4113c49f1f0515f462cdcf84e0f1d6045dfcbb"
)

STORAGE_QUERY_KEYS = (
    decode_hex("0x1cb6f36e027abb2091cfb5110ab5087f06155b3cd9a8c9e5e9a23fd5dc13a5ed"),
    # twox128("Balances") ++ twox128("TotalIssuance")
    decode_hex("0xc2261276cc9d1f8598ea4b6a74b15c2f57c875e4cff74148e4628f264b974c80"),
)

HEADS_TO_OBSERVE = 2
RUNTIME_UPGRADE_TIMEOUT = 600.0


def _expect_header_shape(header: ChainHeader, what: str) -> None:
    expect_length(header.parent_hash, HASH_LENGTH, f"{what} parent hash")
    expect_length(header.state_root, HASH_LENGTH, f"{what} state root")
    expect_length(header.extrinsics_root, HASH_LENGTH, f"{what} extrinsics root")
    expect(header.number >= 0, f"{what} number is negative: {header.number}")


async def check_genesis_hash(ctx: HarnessContext) -> None:
    genesis_hash = await ctx.client.genesis_hash()
    expect_length(genesis_hash, HASH_LENGTH, "genesis hash")


async def check_runtime_metadata(ctx: HarnessContext) -> None:
    metadata = await ctx.client.runtime_metadata()
    expect_equal(metadata.magic_number, METADATA_MAGIC, "metadata magic number")
    log.info("Runtime metadata version %d (%d bytes)", metadata.version, len(metadata.raw))


async def check_runtime_version(
    expectations: ChainExpectations, ctx: HarnessContext
) -> None:
    runtime_version = await ctx.client.runtime_version()
    expect_contains(runtime_version.spec_name, expectations.spec_name_contains, "spec name")
    expect_at_least(len(runtime_version.apis), expectations.min_api_count, "runtime apis")


async def check_library_info(ctx: HarnessContext) -> None:
    info = ctx.client.library_info()
    expect(
        info.startswith(f"{DISTRIBUTION_NAME} v"),
        f"library info: unexpected value {info!r}",
    )


async def check_system_chain(expectations: ChainExpectations, ctx: HarnessContext) -> None:
    chain = await ctx.client.system_chain()
    expect_contains(chain, expectations.chain_name_contains, "chain name")


async def check_system_properties(
    expectations: ChainExpectations, ctx: HarnessContext
) -> None:
    properties = await ctx.client.system_properties()
    if expectations.has_ss58_format:
        expect(properties.ss58_format is not None, "system properties: missing ss58Format")


async def check_system_chain_type(
    expectations: ChainExpectations, ctx: HarnessContext
) -> None:
    chain_type = await ctx.client.system_chain_type()
    expect_equal(chain_type.kind, expectations.chain_type, "chain type")


async def check_system_health(ctx: HarnessContext) -> None:
    health = await ctx.client.system_health()
    expect_at_least(health.peers, 0, "peer count")


async def check_get_header(ctx: HarnessContext) -> None:
    header = await ctx.client.get_header()
    _expect_header_shape(header, "best header")


async def check_subscribe_new_heads(ctx: HarnessContext) -> None:
    received: list[ChainHeader] = []

    async def on_header(header: ChainHeader) -> None:
        expect_length(header.hash, HASH_LENGTH, "subscribed header hash")
        received.append(header)
        if len(received) == HEADS_TO_OBSERVE:
            await subscription.unsubscribe()

    subscription = await ctx.client.subscribe_new_heads(on_header)
    await subscription.wait_closed()

    expect_equal(len(received), HEADS_TO_OBSERVE, "headers delivered before unsubscribe")
    distinct = {header.hash for header in received}
    expect_equal(len(distinct), HEADS_TO_OBSERVE, "distinct headers")


async def check_get_block_hash(ctx: HarnessContext) -> None:
    best_hash = await ctx.client.get_block_hash()
    expect_length(best_hash, HASH_LENGTH, "best block hash")

    first = await ctx.client.get_block_hash(0)
    second = await ctx.client.get_block_hash(0)
    expect_equal(second, first, "repeated block 0 hash")


async def check_get_block(ctx: HarnessContext) -> None:
    signed_block = await ctx.client.get_block()
    _expect_header_shape(signed_block.block.header, "block header")


async def check_finalized_head(ctx: HarnessContext) -> None:
    finalized_hash = await ctx.client.get_finalized_head()
    expect_length(finalized_hash, HASH_LENGTH, "finalized head")

    finalized = await ctx.client.get_header(finalized_hash)
    best = await ctx.client.get_header()
    expect(
        finalized.number <= best.number,
        f"finalized block {finalized.number} is ahead of best block {best.number}",
    )


async def check_query_storage(ctx: HarnessContext) -> None:
    genesis_hash = await ctx.client.get_block_hash(0)
    change_sets = await ctx.client.query_storage(STORAGE_QUERY_KEYS, genesis_hash)

    expect(len(change_sets) > 0, "storage query returned no change sets")
    for change_set in change_sets:
        expect_length(change_set.block, HASH_LENGTH, "change set block hash")
        expect_length(change_set.changes, len(STORAGE_QUERY_KEYS), "change set changes")
    expect_equal(change_sets[0].block, genesis_hash, "first change set block")


async def check_timestamp_now(ctx: HarnessContext) -> None:
    value = await ctx.client.get_storage(TIMESTAMP_NOW_KEY)
    if value is None:
        raise AssertionError("timestamp storage is empty")
    expect_length(value, 8, "encoded timestamp")
    expect(int.from_bytes(value, "little") > 0, "timestamp is zero")


async def check_prove_finality(ctx: HarnessContext) -> None:
    finality = await ctx.client.prove_finality(0)
    expect_equal(finality.block_number, 0, "proven block number")
    if finality.proof is not None:
        expect(len(finality.proof) > 0, "finality proof is empty")


async def check_transfer(ctx: HarnessContext) -> None:
    submitter = await ctx.submitter()
    extrinsic_hash = await submitter.submit_transfer(
        ctx.signer(), ctx.config.transfer_dest, ctx.config.transfer_amount
    )
    expect_length(extrinsic_hash, HASH_LENGTH, "transfer extrinsic hash")


async def check_runtime_upgrade(ctx: HarnessContext) -> None:
    if ctx.config.runtime_wasm_path is None:
        raise CheckSkipped("no runtime WASM configured")

    code = read_runtime_code(ctx.config.runtime_wasm_path)
    submitter = await ctx.submitter()
    stream = await submitter.submit_runtime_upgrade(ctx.signer(), code)
    status = await stream.wait_for(StatusKind.FINALIZED)

    if status.block_hash is None:
        raise AssertionError("finalized status without block hash")
    expect_length(status.block_hash, HASH_LENGTH, "finalized block hash")

    runtime_version = await ctx.client.runtime_version(refresh=True)
    log.info(
        "Runtime upgraded in block 0x%s, spec version now %d",
        status.block_hash.hex(),
        runtime_version.spec_version,
    )


def substrate_checks(expectations: ChainExpectations) -> Sequence[Check]:
    """Build the full check list, in execution order.

    The runtime upgrade comes last since it changes the runtime under the
    other checks.
    """
    return [
        Check(name="genesis_hash", group="constants", run=check_genesis_hash),
        Check(name="runtime_metadata", group="constants", run=check_runtime_metadata),
        Check(
            name="runtime_version",
            group="constants",
            run=partial(check_runtime_version, expectations),
        ),
        Check(name="library_info", group="constants", run=check_library_info),
        Check(
            name="system_chain",
            group="system",
            run=partial(check_system_chain, expectations),
        ),
        Check(
            name="system_properties",
            group="system",
            run=partial(check_system_properties, expectations),
        ),
        Check(
            name="system_chain_type",
            group="system",
            run=partial(check_system_chain_type, expectations),
        ),
        Check(name="system_health", group="system", run=check_system_health),
        Check(name="get_header", group="chain", run=check_get_header),
        Check(name="subscribe_new_heads", group="chain", run=check_subscribe_new_heads),
        Check(name="get_block_hash", group="chain", run=check_get_block_hash),
        Check(name="get_block", group="chain", run=check_get_block),
        Check(name="finalized_head", group="chain", run=check_finalized_head),
        Check(name="query_storage", group="state", run=check_query_storage),
        Check(name="timestamp_now", group="state", run=check_timestamp_now),
        Check(name="prove_finality", group="grandpa", run=check_prove_finality),
        Check(name="transfer", group="tx", run=check_transfer),
        Check(
            name="runtime_upgrade",
            group="upgrade",
            run=check_runtime_upgrade,
            timeout=RUNTIME_UPGRADE_TIMEOUT,
        ),
    ]
