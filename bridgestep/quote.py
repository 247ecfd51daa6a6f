"""Re-quoting of steps that have no prepared transaction."""

from __future__ import annotations

import inspect
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from pydantic import BaseModel

from .contracts import Step, Token
from .errors import ErrorCode, TransactionError

logger = logging.getLogger(__name__)


class ExchangeRateUpdate(BaseModel):
    """Payload handed to the acceptance hook when a quote got worse."""

    to_token: Token
    old_to_amount: str
    new_to_amount: str


AcceptExchangeRateUpdateHook = Callable[
    [ExchangeRateUpdate], Union[bool, Awaitable[bool]]
]


class StepSource(Protocol):
    async def fetch_updated_step(self, step: Step) -> Step:
        ...


def check_step_slippage_threshold(old_step: Step, new_step: Step) -> bool:
    """Return ``True`` when the new quote stays within the step's slippage."""
    old_amount = Decimal(old_step.estimate.to_amount_min)
    new_amount = Decimal(new_step.estimate.to_amount_min)
    if old_amount <= 0:
        return True
    actual_slippage = (old_amount - new_amount) / old_amount
    return actual_slippage <= Decimal(str(old_step.action.slippage))


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class QuoteReconciler:
    """Fetches a fresh transaction plan and gates material changes."""

    def __init__(
        self,
        source: StepSource,
        accept_exchange_rate_update_hook: Optional[AcceptExchangeRateUpdateHook] = None,
    ) -> None:
        self._source = source
        self._accept_hook = accept_exchange_rate_update_hook

    async def reconcile(self, step: Step, allow_user_interaction: bool = True) -> Step:
        """Return an updated copy of ``step``; the input is left untouched."""
        updated = await self._source.fetch_updated_step(step.model_copy(deep=True))
        if check_step_slippage_threshold(step, updated):
            return updated

        logger.info(
            f"Quote for step {step.id} changed beyond slippage: "
            f"{step.estimate.to_amount_min} -> {updated.estimate.to_amount_min}"
        )
        allowed = False
        if allow_user_interaction and self._accept_hook is not None:
            allowed = bool(
                await _maybe_await(
                    self._accept_hook(
                        ExchangeRateUpdate(
                            to_token=updated.action.to_token,
                            old_to_amount=step.estimate.to_amount,
                            new_to_amount=updated.estimate.to_amount,
                        )
                    )
                )
            )
        if not allowed:
            raise TransactionError(
                ErrorCode.EXCHANGE_RATE_UPDATE_CANCELED,
                "Exchange rate has changed! Transaction was not sent, your funds "
                "are still in your wallet. The exchange rate has changed and the "
                "previous estimation can not be fulfilled due to value loss.",
            )
        return updated
