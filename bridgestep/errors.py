"""Error taxonomy and classification for step execution."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

import httpx
from solana.rpc.core import RPCException, UnconfirmedTxError

if TYPE_CHECKING:
    from .contracts import Process, Step

logger = logging.getLogger(__name__)

_REJECTION_MARKERS = ("user rejected", "rejected the request", "user denied")


class ErrorCode(str, Enum):
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    TRANSACTION_UNPREPARED = "TransactionUnprepared"
    TRANSACTION_FAILED = "TransactionFailed"
    RECEIVING_CHAIN_TIMEOUT = "ReceivingChainTimeout"
    SIGNATURE_REJECTED = "SignatureRejected"
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    TIMEOUT = "Timeout"
    EXCHANGE_RATE_UPDATE_CANCELED = "ExchangeRateUpdateCanceled"
    UNKNOWN = "Unknown"


class ExecutionError(Exception):
    """Classified failure carrying a code and user-facing messages."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        html_message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.html_message = html_message
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "html_message": self.html_message,
        }


class BalanceError(ExecutionError):
    pass


class TransactionError(ExecutionError):
    pass


class ProviderError(ExecutionError):
    pass


class ReceivingChainError(ExecutionError):
    pass


class TransactionReplaced(Exception):
    """The network replaced a broadcast transaction with another one."""

    def __init__(self, replacement_tx_id: str) -> None:
        super().__init__(f"Transaction replaced by {replacement_tx_id}")
        self.replacement_tx_id = replacement_tx_id


def parse_error(
    exc: BaseException,
    step: Optional["Step"] = None,
    process: Optional["Process"] = None,
) -> ExecutionError:
    """Map any failure onto the error taxonomy.

    Already classified errors are returned unchanged. Anything that cannot be
    classified becomes an ``Unknown`` error keeping the original message.
    This function never raises.
    """
    if isinstance(exc, ExecutionError):
        return exc

    try:
        message = str(exc) or exc.__class__.__name__
        lowered = message.lower()

        if any(marker in lowered for marker in _REJECTION_MARKERS):
            return TransactionError(
                ErrorCode.SIGNATURE_REJECTED,
                "The signature was rejected. No funds have been sent.",
                cause=exc,
            )
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
            return ProviderError(
                ErrorCode.TIMEOUT,
                f"Request timed out: {message}",
                cause=exc,
            )
        if isinstance(exc, UnconfirmedTxError):
            html = None
            if step is not None and process is not None and process.tx_link:
                html = transaction_failed_message(step, process.tx_link)
            return TransactionError(
                ErrorCode.TRANSACTION_FAILED,
                f"Transaction was not confirmed: {message}",
                html_message=html,
                cause=exc,
            )
        if "insufficient funds" in lowered or "insufficient lamports" in lowered:
            return BalanceError(ErrorCode.INSUFFICIENT_FUNDS, message, cause=exc)
        if isinstance(exc, RPCException):
            return TransactionError(
                ErrorCode.TRANSACTION_FAILED,
                f"Transaction failed: {message}",
                cause=exc,
            )
        if isinstance(exc, httpx.HTTPError):
            return ProviderError(
                ErrorCode.PROVIDER_UNAVAILABLE,
                f"Provider request failed: {message}",
                cause=exc,
            )
        return ExecutionError(ErrorCode.UNKNOWN, message, cause=exc)
    except Exception as parse_exc:
        logger.warning(f"Failed to classify {exc.__class__.__name__}: {parse_exc}")
        return ExecutionError(ErrorCode.UNKNOWN, exc.__class__.__name__, cause=exc)


def transaction_failed_message(step: "Step", tx_link: Optional[str] = None) -> str:
    """Rich explanation for a transfer whose receiving leg did not resolve."""
    token = step.action.to_token
    base = (
        "It appears that your transaction may not have been successful. "
        f"However, to confirm this, please check your wallet on chain "
        f"{token.chain_id} for {token.symbol}."
    )
    if tx_link:
        return f'{base} You can also check the <a href="{tx_link}" target="_blank" rel="nofollow noreferrer">block explorer</a> for more information.'
    return base
