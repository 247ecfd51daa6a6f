"""Chain reference data lookup."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from .contracts import Chain

logger = logging.getLogger(__name__)


class ChainRegistry:
    """Resolves chain ids to explorer and naming data."""

    def __init__(self, chains: Optional[Iterable[Chain]] = None) -> None:
        self._chains: Dict[int, Chain] = {}
        for chain in chains or []:
            self.register(chain)

    def register(self, chain: Chain) -> None:
        self._chains[chain.id] = chain

    def resolve(self, chain_id: int) -> Chain:
        try:
            return self._chains[chain_id]
        except KeyError:
            raise KeyError(f"Chain {chain_id} is not configured") from None

    async def load_from_api(self, api) -> int:
        """Register every chain the remote service knows about."""
        chains = await api.fetch_chains()
        for chain in chains:
            self.register(chain)
        logger.info(f"Loaded {len(chains)} chains from the route API")
        return len(chains)

    def __contains__(self, chain_id: int) -> bool:
        return chain_id in self._chains
