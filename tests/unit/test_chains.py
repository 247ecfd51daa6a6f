"""Chain registry tests."""

import pytest

from bridgestep.chains import ChainRegistry
from bridgestep.contracts import Chain


class FakeChainSource:
    async def fetch_chains(self):
        return [Chain(id=137, key="pol", name="Polygon", explorer_url="https://polygonscan.com/")]


def test_resolve_unknown_chain(chains):
    assert chains.resolve(1).name == "Ethereum"
    assert 137 not in chains
    with pytest.raises(KeyError):
        chains.resolve(137)


@pytest.mark.asyncio
async def test_load_from_api_registers_chains():
    registry = ChainRegistry()

    loaded = await registry.load_from_api(FakeChainSource())

    assert loaded == 1
    assert registry.resolve(137).tx_link("0xabc") == "https://polygonscan.com/tx/0xabc"
