"""Step execution engine for cross-chain transfers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from .adapters import ChainAdapter, ConfirmationResult, SolanaSigner, get_adapter
from .api import RouteApiClient
from .balance import BalanceGuard, SolanaBalanceProvider
from .chains import ChainRegistry
from .config import BridgestepConfig, load_config
from .contracts import Chain, ProcessError, ProcessType, Step
from .errors import (
    ErrorCode,
    ExecutionError,
    TransactionError,
    TransactionReplaced,
    parse_error,
    transaction_failed_message,
)
from .quote import AcceptExchangeRateUpdateHook, QuoteReconciler, _maybe_await
from .status import StatusManager, get_substatus_message
from .waiter import ReceivingChainWaiter

logger = logging.getLogger(__name__)

UpdateTransactionRequestHook = Callable[[Dict[str, Any]], Any]


class ExecutionOptions(BaseModel):
    """Caller hooks applied while a step executes."""

    update_transaction_request_hook: Optional[UpdateTransactionRequestHook] = None
    accept_exchange_rate_update_hook: Optional[AcceptExchangeRateUpdateHook] = None


class StepExecutor:
    """Drives a step from quoting to settlement on the receiving chain.

    The executor is parameterized over a :class:`ChainAdapter` for the source
    chain family. Every status change goes through the ``StatusManager`` and
    every failure is recorded on the step before it propagates, so a step can
    be handed back to :meth:`execute_step` to resume.
    """

    def __init__(
        self,
        adapter: ChainAdapter,
        chains: ChainRegistry,
        api: RouteApiClient,
        balance_guard: BalanceGuard,
        status_manager: Optional[StatusManager] = None,
        reconciler: Optional[QuoteReconciler] = None,
        waiter: Optional[ReceivingChainWaiter] = None,
        options: Optional[ExecutionOptions] = None,
    ) -> None:
        self.adapter = adapter
        self.chains = chains
        self.api = api
        self.balance_guard = balance_guard
        self.status_manager = status_manager or StatusManager()
        self.options = options or ExecutionOptions()
        self.reconciler = reconciler or QuoteReconciler(
            api, self.options.accept_exchange_rate_update_hook
        )
        self.waiter = waiter or ReceivingChainWaiter(api)

    @classmethod
    def from_config(
        cls,
        signer: SolanaSigner,
        config: Optional[BridgestepConfig] = None,
        status_manager: Optional[StatusManager] = None,
        options: Optional[ExecutionOptions] = None,
    ) -> "StepExecutor":
        """Build an executor for Solana source chains from configuration."""
        from solana.rpc.async_api import AsyncClient
        from solana.rpc.commitment import Commitment

        config = config or load_config()
        api = RouteApiClient(config.api)
        commitment = Commitment(config.solana.commitment)
        client = AsyncClient(config.solana.rpc_url, commitment=commitment)
        balance_guard = BalanceGuard(
            SolanaBalanceProvider(client, commitment),
            attempts=config.execution.balance_attempts,
        )
        waiter = ReceivingChainWaiter(
            api,
            interval=config.execution.status_poll_interval,
            timeout=config.execution.receiving_timeout,
        )
        return cls(
            adapter=get_adapter(signer, "solana", config=config, client=client),
            chains=ChainRegistry(config.chains),
            api=api,
            balance_guard=balance_guard,
            status_manager=status_manager,
            waiter=waiter,
            options=options,
        )

    async def execute_step(self, step: Step, allow_user_interaction: bool = True) -> Step:
        """Execute ``step`` and return it with its execution record updated.

        With ``allow_user_interaction`` off, execution stops at the
        ``ACTION_REQUIRED`` gate before anything is signed. The returned step
        may be a re-quoted replacement sharing the original execution record.
        """
        self.status_manager.init_execution_object(step)
        from_chain = self.chains.resolve(step.action.from_chain_id)
        to_chain = self.chains.resolve(step.action.to_chain_id)

        is_bridge_execution = from_chain.id != to_chain.id
        process_type: ProcessType = "CROSS_CHAIN" if is_bridge_execution else "SWAP"
        logger.info(
            f"Executing step {step.id} ({process_type}) from {from_chain.name} to {to_chain.name}"
        )

        process = self.status_manager.find_or_create_process(step, process_type)
        if process.status != "DONE":
            try:
                if process.tx_hash:
                    tx_hash = process.tx_hash
                    logger.info(f"Resuming step {step.id} from transaction {tx_hash}")
                    if process.status == "FAILED":
                        self.status_manager.update_process(step, process_type, "PENDING")
                else:
                    step, sent_hash = await self._prepare_and_send(
                        step, process_type, from_chain, allow_user_interaction
                    )
                    if sent_hash is None:
                        return step
                    tx_hash = sent_hash

                result = await self._confirm(step, process_type, from_chain, tx_hash)

                if is_bridge_execution:
                    self.status_manager.update_process(step, process_type, "DONE")
                else:
                    self._finish_single_chain(step, process_type, result)
            except Exception as exc:
                error = parse_error(exc, step, process)
                logger.error(f"Step {step.id} {process_type} failed: {error.message}")
                self.status_manager.update_process(
                    step,
                    process_type,
                    "FAILED",
                    error=ProcessError(
                        code=error.code.value,
                        message=error.message,
                        html_message=error.html_message,
                    ),
                )
                self.status_manager.update_execution(step, "FAILED")
                if error is exc:
                    raise
                raise error from exc

        if not is_bridge_execution:
            return step

        return await self._wait_for_receiving_chain(step, process.tx_hash, to_chain)

    async def _prepare_and_send(
        self,
        step: Step,
        process_type: ProcessType,
        chain: Chain,
        allow_user_interaction: bool,
    ) -> Tuple[Step, Optional[str]]:
        """Run the checks before broadcast, then sign and send.

        Returns the (possibly replaced) step and the transaction id, or
        ``None`` as id when execution halted at the interaction gate.
        """
        self.status_manager.update_process(step, process_type, "STARTED")

        await self.balance_guard.check(self.adapter.owner_address, step)

        if step.transaction_request is None:
            updated_step = await self.reconciler.reconcile(step, allow_user_interaction)
            step = updated_step.model_copy(update={"execution": step.execution})

        if step.transaction_request is None or not step.transaction_request.data:
            raise TransactionError(
                ErrorCode.TRANSACTION_UNPREPARED, "Unable to prepare transaction."
            )

        self.status_manager.update_process(step, process_type, "ACTION_REQUIRED")
        if not allow_user_interaction:
            logger.info(f"Step {step.id} halted before signing")
            return step, None

        transaction_request = step.transaction_request.model_dump(exclude_none=True)
        hook = self.options.update_transaction_request_hook
        if hook is not None:
            customized = await _maybe_await(
                hook({"request_type": "transaction", **transaction_request})
            )
            transaction_request = {**transaction_request, **(customized or {})}
            transaction_request.pop("request_type", None)

        if not transaction_request.get("data"):
            raise TransactionError(
                ErrorCode.TRANSACTION_UNPREPARED, "Unable to prepare transaction."
            )

        transaction = self.adapter.decode(transaction_request["data"])
        try:
            tx_hash = await self.adapter.send(transaction)
        except TransactionReplaced as replaced:
            if not self.adapter.supports_replacement:
                raise
            tx_hash = replaced.replacement_tx_id
            logger.warning(f"Broadcast of step {step.id} replaced by {tx_hash}")

        self.status_manager.update_process(
            step,
            process_type,
            "PENDING",
            tx_hash=tx_hash,
            tx_link=chain.tx_link(tx_hash),
        )
        return step, tx_hash

    async def _confirm(
        self, step: Step, process_type: ProcessType, chain: Chain, tx_hash: str
    ) -> ConfirmationResult:
        while True:
            try:
                result = await self.adapter.confirm(tx_hash)
            except TransactionReplaced as replaced:
                if not self.adapter.supports_replacement:
                    raise
                tx_hash = replaced.replacement_tx_id
                logger.warning(f"Transaction of step {step.id} replaced by {tx_hash}")
                self.status_manager.update_process(
                    step,
                    process_type,
                    "PENDING",
                    tx_hash=tx_hash,
                    tx_link=chain.tx_link(tx_hash),
                )
                continue

            if not result.ok:
                raise TransactionError(
                    ErrorCode.TRANSACTION_FAILED, f"Transaction failed: {result.error}"
                )
            return result

    def _finish_single_chain(
        self, step: Step, process_type: ProcessType, result: ConfirmationResult
    ) -> None:
        """Close a swap on one chain.

        Amounts are the quoted ones unless the adapter reports the settled
        ``to_amount``; gas comes from the confirmed transaction.
        """
        self.status_manager.update_process(step, process_type, "DONE")
        self.status_manager.update_execution(
            step,
            "DONE",
            from_amount=step.action.from_amount,
            to_amount=result.to_amount or step.estimate.to_amount,
            to_token=step.action.to_token,
            gas_amount=result.gas_amount,
            gas_price=result.gas_price,
            gas_used=result.gas_used,
        )

    async def _wait_for_receiving_chain(
        self, step: Step, sending_tx_hash: Optional[str], chain: Chain
    ) -> Step:
        process = self.status_manager.find_or_create_process(
            step, "RECEIVING_CHAIN", "PENDING"
        )
        if process.status == "DONE":
            return step

        try:
            if process.status == "FAILED":
                self.status_manager.update_process(step, "RECEIVING_CHAIN", "PENDING")
            if not sending_tx_hash:
                raise ExecutionError(
                    ErrorCode.UNKNOWN, "Transaction hash is undefined."
                )

            status = await self.waiter.wait(
                sending_tx_hash, step, self.status_manager, "RECEIVING_CHAIN"
            )
            receiving = status.receiving
            sending = status.sending
            receiving_hash = receiving.tx_hash if receiving else None

            self.status_manager.update_process(
                step,
                "RECEIVING_CHAIN",
                "DONE",
                substatus=status.substatus,
                substatus_message=status.substatus_message
                or get_substatus_message(status.status, status.substatus),
                tx_hash=receiving_hash,
                tx_link=chain.tx_link(receiving_hash) if receiving_hash else None,
            )
            self.status_manager.update_execution(
                step,
                "DONE",
                from_amount=sending.amount if sending else step.action.from_amount,
                to_amount=receiving.amount if receiving else None,
                to_token=receiving.token if receiving else None,
                gas_amount=sending.gas_amount if sending else None,
                gas_amount_usd=sending.gas_amount_usd if sending else None,
                gas_price=sending.gas_price if sending else None,
                gas_token=sending.gas_token if sending else None,
                gas_used=sending.gas_used if sending else None,
            )
        except Exception as exc:
            error = parse_error(exc, step, process)
            code = (
                error.code
                if error.code == ErrorCode.RECEIVING_CHAIN_TIMEOUT
                else ErrorCode.TRANSACTION_FAILED
            )
            sending_process = step.execution.get_process("CROSS_CHAIN")
            tx_link = process.tx_link or (sending_process.tx_link if sending_process else None)
            logger.warning(f"Waiting for receiving chain of step {step.id} failed: {exc}")
            self.status_manager.update_process(
                step,
                "RECEIVING_CHAIN",
                "FAILED",
                error=ProcessError(
                    code=code.value,
                    message=f"Failed while waiting for receiving chain. {error.message}",
                    html_message=transaction_failed_message(step, tx_link),
                ),
            )
            self.status_manager.update_execution(step, "FAILED")
            raise

        logger.info(f"Step {step.id} completed")
        return step

    async def close(self) -> None:
        await self.adapter.close()
        await self.api.close()
