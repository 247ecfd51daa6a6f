"""Core data contracts for step execution."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProcessType = Literal["SWAP", "CROSS_CHAIN", "RECEIVING_CHAIN"]
ProcessStatus = Literal["STARTED", "ACTION_REQUIRED", "PENDING", "DONE", "FAILED"]
ExecutionStatus = Literal["PENDING", "DONE", "FAILED"]


class ApiModel(BaseModel):
    """Base model accepting camelCase API payloads and unknown fields."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class Token(ApiModel):
    address: str
    chain_id: int
    symbol: str
    decimals: int
    name: Optional[str] = None
    price_usd: Optional[str] = Field(default=None, alias="priceUSD")


class Action(ApiModel):
    """What a step moves: tokens, chains and the amount sent."""

    from_chain_id: int
    to_chain_id: int
    from_token: Token
    to_token: Token
    from_amount: str
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    slippage: float = 0.005


class Estimate(ApiModel):
    """Expected outcome and costs of a step."""

    tool: Optional[str] = None
    from_amount: Optional[str] = None
    to_amount: str
    to_amount_min: str
    approval_address: Optional[str] = None
    execution_duration: Optional[float] = None
    fee_costs: List[Dict[str, Any]] = Field(default_factory=list)
    gas_costs: List[Dict[str, Any]] = Field(default_factory=list)


class TransactionRequest(ApiModel):
    """Prepared, chain-specific transaction payload."""

    data: Optional[str] = None
    to: Optional[str] = None
    value: Optional[str] = None
    gas_limit: Optional[str] = None
    gas_price: Optional[str] = None


class ProcessError(ApiModel):
    code: str
    message: str
    html_message: Optional[str] = None


class Process(ApiModel):
    """Resumable state of one execution phase."""

    type: ProcessType
    status: ProcessStatus = "STARTED"
    message: Optional[str] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    done_at: Optional[datetime] = None
    tx_hash: Optional[str] = None
    tx_link: Optional[str] = None
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None
    error: Optional[ProcessError] = None


class Execution(ApiModel):
    """Aggregate status record of a step and its phases."""

    status: ExecutionStatus = "PENDING"
    process: List[Process] = Field(default_factory=list)
    from_amount: Optional[str] = None
    to_amount: Optional[str] = None
    to_token: Optional[Token] = None
    gas_amount: Optional[str] = None
    gas_amount_usd: Optional[str] = Field(default=None, alias="gasAmountUSD")
    gas_price: Optional[str] = None
    gas_token: Optional[Token] = None
    gas_used: Optional[str] = None

    def get_process(self, process_type: str) -> Optional[Process]:
        for process in self.process:
            if process.type == process_type:
                return process
        return None


class Step(ApiModel):
    """One planned leg of a transfer, possibly spanning two chains."""

    id: str
    type: str = "lifi"
    tool: str
    action: Action
    estimate: Estimate
    transaction_request: Optional[TransactionRequest] = None
    execution: Optional[Execution] = None

    def is_cross_chain(self) -> bool:
        return self.action.from_chain_id != self.action.to_chain_id

    def to_json(self) -> str:
        """Serialize step to camelCase JSON."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, data: str) -> "Step":
        """Deserialize step from JSON."""
        return cls.model_validate_json(data)


class TransactionInfo(ApiModel):
    """One side of a transfer as reported by the status service."""

    tx_hash: Optional[str] = None
    tx_link: Optional[str] = None
    amount: Optional[str] = None
    token: Optional[Token] = None
    chain_id: Optional[int] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    gas_token: Optional[Token] = None
    gas_amount: Optional[str] = None
    gas_amount_usd: Optional[str] = Field(default=None, alias="gasAmountUSD")


class StatusResponse(ApiModel):
    status: str
    substatus: Optional[str] = None
    substatus_message: Optional[str] = None
    tool: Optional[str] = None
    sending: Optional[TransactionInfo] = None
    receiving: Optional[TransactionInfo] = None


class Chain(ApiModel):
    """Reference data for a chain, resolved by id."""

    id: int
    key: str
    name: str
    explorer_url: str

    def tx_link(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"
