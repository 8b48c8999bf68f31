"""Suite manifest definition for the plugin system."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pydantic import BaseModel

from chain_rpc_harness.suites.base import Check


class ChainExpectations(BaseModel):
    """Values a suite expects from the chain under test."""

    chain_name_contains: str
    spec_name_contains: str
    min_api_count: int = 11
    chain_type: str = "Local"
    has_ss58_format: bool = True


@dataclass(frozen=True, kw_only=True)
class SuiteManifest:
    """Manifest describing a check suite plugin.

    The manifest pairs the suite's default expectations with the factory
    that builds its checks, so expectations can be overridden per run.
    """

    name: str
    expectations: ChainExpectations
    checks_factory: Callable[[ChainExpectations], Sequence[Check]]

    def checks(self, expectations: ChainExpectations | None = None) -> Sequence[Check]:
        return self.checks_factory(expectations or self.expectations)
