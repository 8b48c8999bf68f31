"""Loading of check suites from entry points."""

from importlib.metadata import entry_points

from chain_rpc_harness.suites.manifest import SuiteManifest

ENTRY_POINT_GROUP = "chain_rpc_harness.suites"


class SuiteNotFoundError(Exception):
    """Raised when a suite is not found."""


def load_suite_manifest(key: str) -> SuiteManifest:
    """Load a suite manifest by key.

    Args:
        key: The suite key as registered in pyproject.toml (e.g., "westend")

    Returns:
        The suite manifest instance

    Raises:
        SuiteNotFoundError: If no suite with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: SuiteManifest = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise SuiteNotFoundError(f"Suite '{key}' not found. Available suites: {available}")
