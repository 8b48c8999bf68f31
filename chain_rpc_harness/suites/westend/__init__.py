"""Westend check suite module."""

from chain_rpc_harness.suites.westend.manifest import westend_manifest

__all__ = ["westend_manifest"]
