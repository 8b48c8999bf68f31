"""Westend suite manifest."""

from chain_rpc_harness.suites.manifest import ChainExpectations, SuiteManifest
from chain_rpc_harness.suites.substrate import substrate_checks

westend_manifest = SuiteManifest(
    name="westend",
    expectations=ChainExpectations(
        chain_name_contains="Westend",
        spec_name_contains="westend",
        min_api_count=11,
        chain_type="Local",
    ),
    checks_factory=substrate_checks,
)
