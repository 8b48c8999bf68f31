"""Exceptions raised by the harness."""

from collections.abc import Sequence
from typing import Any


class HarnessError(Exception):
    """Base class for harness errors."""


class NodeConnectionError(HarnessError, ConnectionError):
    """Raised when the node endpoint is malformed or cannot be reached."""


class RpcError(HarnessError):
    """Raised when the node answers a request with an error frame."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


class RpcTimeoutError(HarnessError, TimeoutError):
    """Raised when no response arrives before the call deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"No response to {method} within {timeout} seconds")
        self.method = method
        self.timeout = timeout


class SubmissionError(HarnessError):
    """Raised when an extrinsic cannot be signed or is rejected by the node."""


class UnsupportedCallError(HarnessError):
    """Raised when none of the candidate call paths exist on the node."""

    def __init__(self, candidates: Sequence[str]) -> None:
        super().__init__(
            f"None of the call paths are available on the node: {', '.join(candidates)}"
        )
        self.candidates = tuple(candidates)


class IllegalTransitionError(HarnessError):
    """Raised when the harness state machine is driven out of order."""
