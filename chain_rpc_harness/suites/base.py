"""Check definitions and assertion helpers."""

from collections.abc import Awaitable, Callable, Sized
from dataclasses import dataclass
from typing import Any

from chain_rpc_harness.context import HarnessContext


class CheckSkipped(Exception):
    """Raised by a check that cannot run in the current configuration."""


@dataclass(frozen=True, kw_only=True)
class Check:
    """A named check run against a live node.

    ``timeout`` overrides the configured per-check timeout when set.
    """

    name: str
    group: str
    run: Callable[[HarnessContext], Awaitable[None]]
    timeout: float | None = None


def expect(condition: bool, message: str) -> None:
    """Fail the check with ``message`` unless ``condition`` holds."""
    if not condition:
        raise AssertionError(message)


def expect_equal(actual: Any, expected: Any, what: str) -> None:
    expect(actual == expected, f"{what}: expected {expected!r}, got {actual!r}")


def expect_length(value: Sized, length: int, what: str) -> None:
    expect(
        len(value) == length,
        f"{what}: expected length {length}, got {len(value)}",
    )


def expect_contains(container: Any, item: Any, what: str) -> None:
    expect(item in container, f"{what}: expected {container!r} to contain {item!r}")


def expect_at_least(actual: int, minimum: int, what: str) -> None:
    expect(actual >= minimum, f"{what}: expected at least {minimum}, got {actual}")
