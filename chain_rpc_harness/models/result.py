"""Models for check execution results."""

from dataclasses import dataclass
from typing import Literal

CheckStatus = Literal["success", "failure", "timeout", "error", "skipped"]


@dataclass(frozen=True, kw_only=True)
class CheckResult:
    """Result of a single check run against the node."""

    name: str
    group: str
    status: CheckStatus
    duration: float
    message: str | None = None
