"""Tests for harness configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from chain_rpc_harness.config import BOB_ADDRESS, HarnessConfig


def test_defaults() -> None:
    """Uses the local dev node and the well-known dev accounts by default."""
    config = HarnessConfig()

    assert config.endpoint == "ws://127.0.0.1:8546"
    assert config.connect_retries == 2
    assert config.runtime_wasm_path is None
    assert config.signer_uri.get_secret_value() == "//Alice"
    assert config.transfer_dest == BOB_ADDRESS
    assert config.transfer_amount == 12345


def test_signer_uri_is_hidden_in_repr() -> None:
    """Does not leak the signer URI when printed."""
    config = HarnessConfig(signer_uri="//Charlie")

    assert "//Charlie" not in repr(config)


def test_from_env_reads_prefixed_variables() -> None:
    """Reads CHAIN_RPC_* variables and ignores everything else."""
    config = HarnessConfig.from_env(
        {
            "CHAIN_RPC_ENDPOINT": "wss://node.example:443",
            "CHAIN_RPC_CONNECT_RETRIES": "5",
            "CHAIN_RPC_RUNTIME_WASM_PATH": "/runtimes/westend.wasm",
            "ENDPOINT": "ws://ignored:1",
        }
    )

    assert config.endpoint == "wss://node.example:443"
    assert config.connect_retries == 5
    assert config.runtime_wasm_path == Path("/runtimes/westend.wasm")


def test_from_env_defaults_to_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Falls back to os.environ when no mapping is given."""
    monkeypatch.setenv("CHAIN_RPC_RPC_TIMEOUT", "1.5")

    assert HarnessConfig.from_env().rpc_timeout == 1.5


@pytest.mark.parametrize(
    "field, value",
    [
        ("rpc_timeout", 0),
        ("connect_retries", -1),
        ("retry_delay", -0.5),
        ("transfer_amount", 0),
    ],
)
def test_rejects_out_of_range_values(field: str, value: float) -> None:
    """Rejects non-positive timeouts, negative retries and empty transfers."""
    with pytest.raises(ValidationError):
        HarnessConfig.model_validate({field: value})
