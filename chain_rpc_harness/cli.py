"""CLI entry point for the chain RPC harness."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from chain_rpc_harness.config import HarnessConfig
from chain_rpc_harness.errors import NodeConnectionError
from chain_rpc_harness.models.result import CheckResult
from chain_rpc_harness.runner import Harness
from chain_rpc_harness.suites.base import Check
from chain_rpc_harness.suites.loading import load_suite_manifest
from chain_rpc_harness.suites.manifest import ChainExpectations

STATUS_SYMBOLS = {
    "success": "✅",
    "failure": "❌",
    "error": "❗",
    "timeout": "⏱️",
    "skipped": "⏭️",
}


def log_results_summary(log: logging.Logger, results: Sequence[CheckResult]) -> None:
    """Log a formatted summary of check results."""
    log.info("=" * 80)
    log.info("Check Results Summary:")
    log.info("=" * 80)

    for result in results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s/%s: %s (%.2fs)",
            symbol,
            result.group,
            result.name,
            result.status,
            result.duration,
        )
        if result.message:
            log.info("  Message: %s", result.message)


def parse_check_names(check_names: str) -> Sequence[str]:
    """Parse comma-separated check names."""
    if not check_names.strip():
        return ()
    return tuple(s.strip() for s in check_names.split(",") if s.strip())


def select_checks(
    checks: Sequence[Check], only: Sequence[str] = (), skip: Sequence[str] = ()
) -> Sequence[Check]:
    """Filter checks by name, keeping their original order."""
    return [
        check
        for check in checks
        if (not only or check.name in only) and check.name not in skip
    ]


def format_output(results: Sequence[CheckResult]) -> dict[str, Any]:
    """Format check results for JSON output."""
    all_results = [
        {
            "name": result.name,
            "group": result.group,
            "status": result.status,
            "duration": result.duration,
            "message": result.message,
        }
        for result in results
    ]

    return {
        "total": len(all_results),
        "passed": sum(1 for r in all_results if r["status"] == "success"),
        "failed": sum(1 for r in all_results if r["status"] == "failure"),
        "errors": sum(1 for r in all_results if r["status"] == "error"),
        "timeouts": sum(1 for r in all_results if r["status"] == "timeout"),
        "skipped": sum(1 for r in all_results if r["status"] == "skipped"),
        "results": all_results,
    }


async def run(
    suite_key: str,
    config: HarnessConfig,
    expectations_json: str | None = None,
    only: Sequence[str] = (),
    skip: Sequence[str] = (),
    harness: Harness | None = None,
) -> int:
    """Run a check suite and return exit code."""
    log = logging.getLogger("chain_rpc_harness")

    log.info("Loading suite: %s", suite_key)
    manifest = load_suite_manifest(suite_key)

    expectations: ChainExpectations | None = None
    if expectations_json:
        overrides = json.loads(expectations_json)
        expectations = ChainExpectations.model_validate(
            manifest.expectations.model_dump() | overrides
        )

    checks = select_checks(manifest.checks(expectations), only, skip)
    if not checks:
        log.info("No checks selected")
        print(json.dumps({"total": 0, "results": []}))
        return 0

    harness = harness or Harness(config=config)
    try:
        async with harness.session() as context:
            results = await harness.run_checks(context, checks)
    except NodeConnectionError as exc:
        log.error("Harness aborted: %s", exc)
        return 1

    log_results_summary(log, results)

    output = format_output(results)
    print(json.dumps(output, indent=2))

    has_failures = any(
        result.status in {"failure", "error", "timeout"} for result in results
    )

    return 1 if has_failures else 0


def build_config(args: argparse.Namespace) -> HarnessConfig:
    """Build the harness config from the environment and CLI overrides."""
    config = HarnessConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.endpoint is not None:
        overrides["endpoint"] = args.endpoint
    if args.runtime_wasm is not None:
        overrides["runtime_wasm_path"] = args.runtime_wasm
    if args.rpc_timeout is not None:
        overrides["rpc_timeout"] = args.rpc_timeout
    return HarnessConfig.model_validate(config.model_dump() | overrides)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run RPC checks against a Substrate-based chain node"
    )
    parser.add_argument(
        "--suite",
        default="westend",
        help="Suite key (westend)",
    )
    parser.add_argument(
        "--endpoint",
        help="WebSocket endpoint of the node (ws:// or wss://)",
    )
    parser.add_argument(
        "--expectations",
        help="JSON overrides for the suite's chain expectations",
    )
    parser.add_argument(
        "--runtime-wasm",
        type=Path,
        help="Path to a runtime WASM blob for the runtime upgrade check",
    )
    parser.add_argument(
        "--rpc-timeout",
        type=float,
        help="Timeout in seconds for a single RPC call",
    )
    parser.add_argument(
        "--only",
        default="",
        help="Comma-separated check names to run",
    )
    parser.add_argument(
        "--skip",
        default="",
        help="Comma-separated check names to leave out",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            suite_key=args.suite,
            config=build_config(args),
            expectations_json=args.expectations,
            only=parse_check_names(args.only),
            skip=parse_check_names(args.skip),
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
