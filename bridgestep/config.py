from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_API_URL,
    DEFAULT_BALANCE_ATTEMPTS,
    DEFAULT_BROADCAST_MAX_RETRIES,
    DEFAULT_COMMITMENT,
    DEFAULT_SOLANA_RPC_URL,
    DEFAULT_STATUS_POLL_INTERVAL,
    SOLANA_CHAIN_ID,
)
from .contracts import Chain


class ApiConfig(BaseModel):
    """Configuration for the remote quoting and status service."""

    base_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    integrator: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 2
    backoff_base: float = 1.5


class SolanaConfig(BaseModel):
    """Solana RPC and broadcast settings."""

    rpc_url: str = DEFAULT_SOLANA_RPC_URL
    commitment: Literal["processed", "confirmed", "finalized"] = DEFAULT_COMMITMENT
    max_retries: int = DEFAULT_BROADCAST_MAX_RETRIES
    skip_preflight: bool = True


class ExecutionConfig(BaseModel):
    """Step execution behaviour."""

    allow_user_interaction: bool = True
    status_poll_interval: float = DEFAULT_STATUS_POLL_INTERVAL
    receiving_timeout: Optional[float] = None
    balance_attempts: int = DEFAULT_BALANCE_ATTEMPTS


def _default_chains() -> List[Chain]:
    return [
        Chain(
            id=SOLANA_CHAIN_ID,
            key="sol",
            name="Solana",
            explorer_url="https://solscan.io",
        )
    ]


class BridgestepConfig(BaseModel):
    """Top-level configuration model."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    solana: SolanaConfig = Field(default_factory=SolanaConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    chains: List[Chain] = Field(default_factory=_default_chains)


def load_config(path: Optional[str] = None) -> BridgestepConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to BRIDGESTEP_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("BRIDGESTEP_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BridgestepConfig(**data)
    else:
        config = BridgestepConfig()

    if env_api_url := os.getenv("BRIDGESTEP_API_URL"):
        config.api.base_url = env_api_url
    if env_api_key := os.getenv("BRIDGESTEP_API_KEY"):
        config.api.api_key = env_api_key
    if env_rpc_url := os.getenv("BRIDGESTEP_SOLANA_RPC_URL"):
        config.solana.rpc_url = env_rpc_url
    return config
