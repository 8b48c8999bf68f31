"""Configuration for the harness."""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr

ENV_PREFIX = "CHAIN_RPC_"

# Well-known dev account addresses.
BOB_ADDRESS = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"


class HarnessConfig(BaseModel):
    """Configuration for a harness run.

    Connection acquisition makes ``connect_retries + 1`` attempts with
    ``retry_delay`` seconds between them. ``rpc_timeout`` bounds every single
    RPC call, ``check_timeout`` bounds a whole check.
    """

    endpoint: str = "ws://127.0.0.1:8546"
    rpc_timeout: float = Field(default=5.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    connect_retries: int = Field(default=2, ge=0)
    retry_delay: float = Field(default=2.0, ge=0)
    check_timeout: float = Field(default=30.0, gt=0)
    runtime_wasm_path: Path | None = None
    signer_uri: SecretStr = SecretStr("//Alice")
    transfer_dest: str = BOB_ADDRESS
    transfer_amount: int = Field(default=12345, gt=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HarnessConfig":
        """Build a config from ``CHAIN_RPC_*`` variables, e.g. ``CHAIN_RPC_ENDPOINT``."""
        environ = os.environ if environ is None else environ
        values = {
            name: environ[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if ENV_PREFIX + name.upper() in environ
        }
        return cls.model_validate(values)
