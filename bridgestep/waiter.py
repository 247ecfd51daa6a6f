"""Polling for the destination-side leg of cross-chain transfers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from .constants import DEFAULT_STATUS_POLL_INTERVAL
from .contracts import ProcessType, StatusResponse, Step
from .errors import ErrorCode, ExecutionError, ProviderError, ReceivingChainError
from .status import StatusManager, get_substatus_message
from .utils.retry import repeat_until_done

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    async def fetch_receiving_leg_status(
        self,
        tx_hash: str,
        bridge: Optional[str] = None,
        from_chain: Optional[int] = None,
        to_chain: Optional[int] = None,
    ) -> StatusResponse:
        ...


class ReceivingChainWaiter:
    """Waits until the status service reports the receiving leg settled."""

    def __init__(
        self,
        source: StatusSource,
        interval: float = DEFAULT_STATUS_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> None:
        self._source = source
        self._interval = interval
        self._timeout = timeout

    async def wait(
        self,
        tx_hash: str,
        step: Step,
        status_manager: Optional[StatusManager] = None,
        process_type: ProcessType = "RECEIVING_CHAIN",
    ) -> StatusResponse:
        """Poll until the transfer started by ``tx_hash`` is ``DONE``.

        ``PENDING`` responses update the process substatus. ``NOT_FOUND`` and
        failed status fetches keep polling. ``FAILED`` and ``INVALID`` raise
        ``ReceivingChainError``.
        """

        async def poll() -> Optional[StatusResponse]:
            try:
                response = await self._source.fetch_receiving_leg_status(
                    tx_hash,
                    bridge=step.tool,
                    from_chain=step.action.from_chain_id,
                    to_chain=step.action.to_chain_id,
                )
            except ExecutionError as exc:
                logger.debug(f"Fetching status for {tx_hash} failed: {exc}")
                return None

            if response.status == "DONE":
                return response
            if response.status == "PENDING":
                if status_manager is not None:
                    status_manager.update_process(
                        step,
                        process_type,
                        "PENDING",
                        substatus=response.substatus,
                        substatus_message=response.substatus_message
                        or get_substatus_message(response.status, response.substatus),
                    )
                return None
            if response.status == "NOT_FOUND":
                return None
            raise ReceivingChainError(
                ErrorCode.TRANSACTION_FAILED,
                f"Transfer {tx_hash} ended as {response.status}"
                + (f" ({response.substatus})" if response.substatus else ""),
            )

        try:
            status = await repeat_until_done(poll, self._interval, self._timeout)
        except asyncio.TimeoutError as exc:
            raise ReceivingChainError(
                ErrorCode.RECEIVING_CHAIN_TIMEOUT,
                f"Receiving chain did not settle {tx_hash} within {self._timeout} seconds",
                cause=exc,
            ) from exc

        if status.receiving is None:
            raise ProviderError(
                ErrorCode.PROVIDER_UNAVAILABLE,
                "Status doesn't contain receiving information.",
            )
        return status
