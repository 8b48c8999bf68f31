"""Tests for suite manifests."""

from unittest.mock import Mock

from chain_rpc_harness.suites.manifest import ChainExpectations, SuiteManifest
from chain_rpc_harness.suites.westend import westend_manifest


def test_checks_use_default_expectations() -> None:
    """Builds checks from the manifest's own expectations by default."""
    factory = Mock(return_value=[])
    expectations = ChainExpectations(chain_name_contains="A", spec_name_contains="a")
    manifest = SuiteManifest(name="a", expectations=expectations, checks_factory=factory)

    manifest.checks()

    factory.assert_called_once_with(expectations)


def test_checks_accept_override() -> None:
    """Builds checks from the given expectations when passed."""
    factory = Mock(return_value=[])
    manifest = SuiteManifest(
        name="a",
        expectations=ChainExpectations(chain_name_contains="A", spec_name_contains="a"),
        checks_factory=factory,
    )
    override = ChainExpectations(chain_name_contains="B", spec_name_contains="b")

    manifest.checks(override)

    factory.assert_called_once_with(override)


def test_westend_suite_order() -> None:
    """Runs constants first and the runtime upgrade last."""
    names = [check.name for check in westend_manifest.checks()]

    assert names[0] == "genesis_hash"
    assert names[-1] == "runtime_upgrade"
    assert len(names) == len(set(names))
    assert {"subscribe_new_heads", "query_storage", "transfer"} <= set(names)


def test_westend_runtime_upgrade_has_long_timeout() -> None:
    """Gives the runtime upgrade more time than the default check timeout."""
    upgrade = westend_manifest.checks()[-1]

    assert upgrade.timeout is not None
    assert upgrade.timeout >= 600
