"""Shared fakes and fixtures for step execution tests."""

from __future__ import annotations

import base64
from collections import deque
from typing import Deque, List, Optional, Union

import pytest

from bridgestep.adapters.base import ChainAdapter, ConfirmationResult
from bridgestep.balance import BalanceGuard
from bridgestep.chains import ChainRegistry
from bridgestep.contracts import Chain, StatusResponse, Step, Token
from bridgestep.execute import ExecutionOptions, StepExecutor
from bridgestep.status import StatusManager
from bridgestep.waiter import ReceivingChainWaiter

SOLANA_ID = 1151111081099710
ETHEREUM_ID = 1
PAYLOAD = base64.b64encode(b"versioned-transaction").decode()


class FakeAdapter(ChainAdapter[bytes]):
    """Records every signing and confirmation call."""

    def __init__(
        self,
        tx_ids: Optional[List[Union[str, Exception]]] = None,
        confirmations: Optional[List[Union[ConfirmationResult, Exception]]] = None,
        supports_replacement: bool = False,
    ) -> None:
        self._tx_ids: Deque = deque(tx_ids or ["sig-1"])
        self._confirmations: Deque = deque(confirmations or [])
        self.supports_replacement = supports_replacement
        self.sent: List[bytes] = []
        self.confirmed: List[str] = []

    @property
    def owner_address(self) -> str:
        return "Owner1111111111111111111111111111111111111"

    def decode(self, payload: str) -> bytes:
        return base64.b64decode(payload)

    async def send(self, transaction: bytes) -> str:
        self.sent.append(transaction)
        outcome = self._tx_ids.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def confirm(self, tx_id: str) -> ConfirmationResult:
        self.confirmed.append(tx_id)
        if not self._confirmations:
            return ConfirmationResult(tx_id=tx_id, gas_amount="5000")
        outcome = self._confirmations.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeApi:
    """Stands in for the quoting and status service."""

    def __init__(
        self,
        updated_step: Optional[Step] = None,
        statuses: Optional[List[Union[StatusResponse, Exception]]] = None,
    ) -> None:
        self.updated_step = updated_step
        self._statuses: Deque = deque(statuses or [])
        self.step_requests: List[Step] = []
        self.status_requests: List[dict] = []

    async def fetch_updated_step(self, step: Step) -> Step:
        self.step_requests.append(step)
        if self.updated_step is None:
            raise AssertionError("no updated step configured")
        return self.updated_step.model_copy(deep=True)

    async def fetch_receiving_leg_status(
        self, tx_hash, bridge=None, from_chain=None, to_chain=None
    ) -> StatusResponse:
        self.status_requests.append(
            {"tx_hash": tx_hash, "bridge": bridge, "from_chain": from_chain, "to_chain": to_chain}
        )
        outcome = self._statuses.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        pass


class FakeBalanceProvider:
    def __init__(self, balances: Union[int, List[int]] = 10**12) -> None:
        self._balances = deque(balances if isinstance(balances, list) else [balances])
        self.calls = 0

    async def get_balance(self, owner: str, token: Token) -> int:
        self.calls += 1
        if len(self._balances) > 1:
            return self._balances.popleft()
        return self._balances[0]


def _token(chain_id: int, symbol: str, address: str, decimals: int) -> dict:
    return {"address": address, "chainId": chain_id, "symbol": symbol, "decimals": decimals}


def build_step(
    cross_chain: bool = False,
    with_transaction: bool = True,
    to_amount_min: str = "990000",
    step_id: str = "step-1",
) -> Step:
    to_chain = ETHEREUM_ID if cross_chain else SOLANA_ID
    data = {
        "id": step_id,
        "type": "lifi",
        "tool": "mayan" if cross_chain else "jupiter",
        "action": {
            "fromChainId": SOLANA_ID,
            "toChainId": to_chain,
            "fromToken": _token(SOLANA_ID, "SOL", "11111111111111111111111111111111", 9),
            "toToken": _token(to_chain, "USDC", "usdc-address", 6),
            "fromAmount": "1000000000",
            "slippage": 0.005,
        },
        "estimate": {"toAmount": "1000000", "toAmountMin": to_amount_min},
    }
    if with_transaction:
        data["transactionRequest"] = {"data": PAYLOAD}
    return Step.model_validate(data)


def done_status(tx_hash: str = "0xreceived") -> StatusResponse:
    return StatusResponse.model_validate(
        {
            "status": "DONE",
            "substatus": "COMPLETED",
            "sending": {"txHash": "sig-1", "amount": "1000000000", "gasAmount": "5000", "gasUsed": "1"},
            "receiving": {
                "txHash": tx_hash,
                "amount": "998000",
                "token": _token(ETHEREUM_ID, "USDC", "usdc-address", 6),
            },
        }
    )


@pytest.fixture
def chains() -> ChainRegistry:
    return ChainRegistry(
        [
            Chain(id=SOLANA_ID, key="sol", name="Solana", explorer_url="https://solscan.io/"),
            Chain(id=ETHEREUM_ID, key="eth", name="Ethereum", explorer_url="https://etherscan.io/"),
        ]
    )


@pytest.fixture
def make_executor(chains):
    """Build an executor around fakes; returns the executor and its parts."""

    def _make(
        adapter: Optional[FakeAdapter] = None,
        api: Optional[FakeApi] = None,
        balances: Union[int, List[int]] = 10**12,
        options: Optional[ExecutionOptions] = None,
        status_manager: Optional[StatusManager] = None,
        receiving_timeout: Optional[float] = None,
    ):
        adapter = adapter or FakeAdapter()
        api = api or FakeApi()
        provider = FakeBalanceProvider(balances)
        executor = StepExecutor(
            adapter=adapter,
            chains=chains,
            api=api,
            balance_guard=BalanceGuard(provider, attempts=1, retry_delay=0),
            status_manager=status_manager,
            waiter=ReceivingChainWaiter(api, interval=0, timeout=receiving_timeout),
            options=options,
        )
        return executor, adapter, api, provider

    return _make
