"""Base interface for chain-family signing and confirmation."""

from __future__ import annotations

import abc
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

TransactionT = TypeVar("TransactionT")


class ConfirmationResult(BaseModel):
    """Outcome of waiting for a broadcast transaction."""

    tx_id: str
    error: Optional[str] = None
    gas_amount: Optional[str] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    to_amount: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.error


class ChainAdapter(Generic[TransactionT], metaclass=abc.ABCMeta):
    """Signs, broadcasts and confirms transactions for one chain family.

    Adapters that can observe the network replacing a transaction set
    ``supports_replacement`` and raise
    :class:`~bridgestep.errors.TransactionReplaced` from ``send`` or
    ``confirm``.
    """

    family: str = "generic"
    supports_replacement: bool = False

    @property
    @abc.abstractmethod
    def owner_address(self) -> str:
        """Address of the account that signs transactions."""
        raise NotImplementedError

    @abc.abstractmethod
    def decode(self, payload: str) -> TransactionT:
        """Turn a prepared payload into the family's native transaction."""
        raise NotImplementedError

    @abc.abstractmethod
    async def send(self, transaction: TransactionT) -> str:
        """Sign and broadcast ``transaction``, returning its identifier."""
        raise NotImplementedError

    @abc.abstractmethod
    async def confirm(self, tx_id: str) -> ConfirmationResult:
        """Wait until ``tx_id`` reaches the adapter's commitment level."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release network resources (no-op by default)."""
        pass
