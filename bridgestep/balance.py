"""Balance verification before a transaction is built."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Protocol

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.types import TokenAccountOpts
from solders.pubkey import Pubkey

from .constants import (
    DEFAULT_BALANCE_ATTEMPTS,
    DEFAULT_BALANCE_RETRY_DELAY,
    NATIVE_SOL_ADDRESS,
)
from .contracts import Step, Token
from .errors import BalanceError, ErrorCode

logger = logging.getLogger(__name__)


class BalanceProvider(Protocol):
    """Reads an owner's balance of a token in base units."""

    async def get_balance(self, owner: str, token: Token) -> int:
        ...


class SolanaBalanceProvider:
    """Balance lookups for native SOL and SPL tokens."""

    def __init__(self, client: AsyncClient, commitment: Commitment = Confirmed) -> None:
        self._client = client
        self._commitment = commitment

    async def get_balance(self, owner: str, token: Token) -> int:
        owner_key = Pubkey.from_string(owner)
        if token.address == NATIVE_SOL_ADDRESS:
            resp = await self._client.get_balance(owner_key, commitment=self._commitment)
            return resp.value

        resp = await self._client.get_token_accounts_by_owner_json_parsed(
            owner_key,
            TokenAccountOpts(mint=Pubkey.from_string(token.address)),
            commitment=self._commitment,
        )
        total = 0
        for keyed_account in resp.value:
            info = keyed_account.account.data.parsed["info"]
            total += int(info["tokenAmount"]["amount"])
        return total


def format_units(amount: int, decimals: int) -> str:
    value = Decimal(amount).scaleb(-decimals)
    return format(value.normalize(), "f")


class BalanceGuard:
    """Fails a step early when the owner can't cover its source amount."""

    def __init__(
        self,
        provider: BalanceProvider,
        attempts: int = DEFAULT_BALANCE_ATTEMPTS,
        retry_delay: float = DEFAULT_BALANCE_RETRY_DELAY,
    ) -> None:
        self._provider = provider
        self._attempts = max(1, attempts)
        self._retry_delay = retry_delay

    async def check(self, owner: str, step: Step) -> None:
        """Raise ``BalanceError`` unless ``owner`` holds the step's amount.

        A shortfall that fits inside the step's slippage lowers
        ``action.from_amount`` to the held balance instead of failing.
        """
        token = step.action.from_token
        needed = int(step.action.from_amount)

        current = 0
        for attempt in range(self._attempts):
            current = await self._provider.get_balance(owner, token)
            if current >= needed:
                return
            if attempt < self._attempts - 1:
                logger.debug(
                    f"Balance of {owner} is {current} {token.symbol}, "
                    f"needed {needed}; re-reading"
                )
                await asyncio.sleep(self._retry_delay)

        slippage_floor = needed * Decimal(str(1 - step.action.slippage))
        if current > 0 and slippage_floor <= current:
            logger.warning(
                f"Lowering from_amount of step {step.id} from {needed} to {current} "
                "within slippage"
            )
            step.action.from_amount = str(current)
            return

        needed_fmt = format_units(needed, token.decimals)
        current_fmt = format_units(current, token.decimals)
        message = (
            f"Your {token.symbol} balance is too low, you try to transfer "
            f"{needed_fmt} {token.symbol}, but your wallet only holds "
            f"{current_fmt} {token.symbol}. No funds have been sent."
        )
        if current != 0:
            message += (
                " If the problem persists, please delete this transfer and start "
                f"a new one with a maximum of {current_fmt} {token.symbol}."
            )
        raise BalanceError(ErrorCode.INSUFFICIENT_FUNDS, message)
