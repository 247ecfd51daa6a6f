"""Chain-family adapter factory."""

from __future__ import annotations

from typing import Any, Optional

from ..config import BridgestepConfig, load_config
from .base import ChainAdapter, ConfirmationResult
from .solana import KeypairSigner, SolanaAdapter, SolanaSigner


def get_adapter(
    signer: SolanaSigner,
    family: str = "solana",
    config: Optional[BridgestepConfig] = None,
    client: Any = None,
) -> ChainAdapter:
    """Factory function to build the adapter for a chain family."""

    config = config or load_config()
    family = family.lower()

    if family == "solana":
        from solana.rpc.async_api import AsyncClient
        from solana.rpc.commitment import Commitment

        solana_conf = config.solana
        commitment = Commitment(solana_conf.commitment)
        return SolanaAdapter(
            signer,
            client or AsyncClient(solana_conf.rpc_url, commitment=commitment),
            commitment=commitment,
            max_retries=solana_conf.max_retries,
            skip_preflight=solana_conf.skip_preflight,
        )
    else:
        raise ValueError(f"Unsupported chain family: {family}")


__all__ = [
    "ChainAdapter",
    "ConfirmationResult",
    "KeypairSigner",
    "SolanaAdapter",
    "SolanaSigner",
    "get_adapter",
]
