"""Process ledger: owns the execution record attached to a step."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Optional

from .contracts import Execution, Process, ProcessStatus, ProcessType, Step

logger = logging.getLogger(__name__)

# Allowed next statuses per current status. Repeating a status is always
# allowed so updates stay idempotent.
_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "STARTED": frozenset({"ACTION_REQUIRED", "PENDING", "DONE", "FAILED"}),
    "ACTION_REQUIRED": frozenset({"STARTED", "PENDING", "DONE", "FAILED"}),
    "PENDING": frozenset({"DONE", "FAILED"}),
    "DONE": frozenset(),
    "FAILED": frozenset({"STARTED", "PENDING"}),
}

_PROCESS_MESSAGES: Dict[str, Dict[str, str]] = {
    "SWAP": {
        "STARTED": "Preparing swap transaction.",
        "ACTION_REQUIRED": "Please sign the transaction.",
        "PENDING": "Waiting for swap transaction.",
        "DONE": "Swap completed.",
    },
    "CROSS_CHAIN": {
        "STARTED": "Preparing bridge transaction.",
        "ACTION_REQUIRED": "Please sign the transaction.",
        "PENDING": "Waiting for bridge transaction.",
        "DONE": "Bridge transaction confirmed.",
    },
    "RECEIVING_CHAIN": {
        "PENDING": "Waiting for destination chain.",
        "DONE": "Bridge completed.",
    },
}

_SUBSTATUS_MESSAGES: Dict[str, Dict[str, str]] = {
    "PENDING": {
        "BRIDGE_NOT_AVAILABLE": "Bridge communication is temporarily unavailable.",
        "CHAIN_NOT_AVAILABLE": "RPC communication is temporarily unavailable.",
        "UNKNOWN_ERROR": "An unexpected error occurred while tracking the transfer.",
        "WAIT_SOURCE_CONFIRMATIONS": "The bridge is waiting for additional confirmations.",
        "WAIT_DESTINATION_TRANSACTION": (
            "The bridge off-chain logic is being executed. "
            "Wait for the transaction to appear on the destination chain."
        ),
    },
    "DONE": {
        "PARTIAL": "Some of the received tokens are not the requested destination tokens.",
        "REFUNDED": "The tokens were refunded to the sender address.",
        "COMPLETED": "The transfer is complete.",
    },
}


class InvalidTransitionError(ValueError):
    """Raised when a status update would move state backwards."""


def get_process_message(process_type: str, status: str) -> Optional[str]:
    return _PROCESS_MESSAGES.get(process_type, {}).get(status)


def get_substatus_message(status: str, substatus: Optional[str]) -> Optional[str]:
    if not substatus:
        return None
    return _SUBSTATUS_MESSAGES.get(status, {}).get(substatus)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StatusManager:
    """Pure state container for step executions.

    Each step owns its own execution record, so one manager can serve many
    steps at once. Updates to the same step must come from a single caller.
    """

    def __init__(self, on_update: Optional[Callable[[Step], None]] = None) -> None:
        self._on_update = on_update

    def init_execution_object(self, step: Step) -> Execution:
        """Create the step's execution record if it has none."""
        if step.execution is None:
            step.execution = Execution(status="PENDING", process=[])
            self._notify(step)
        return step.execution

    def find_or_create_process(
        self,
        step: Step,
        process_type: ProcessType,
        status: ProcessStatus = "STARTED",
    ) -> Process:
        """Return the process of ``process_type`` or create it."""
        execution = self._require_execution(step)
        process = execution.get_process(process_type)
        if process is not None:
            return process

        process = Process(
            type=process_type,
            status=status,
            message=get_process_message(process_type, status),
            started_at=_now(),
        )
        execution.process.append(process)
        logger.debug(f"Created {process_type} process for step {step.id} as {status}")
        self._notify(step)
        return process

    def update_process(
        self,
        step: Step,
        process_type: ProcessType,
        status: ProcessStatus,
        **patch: Any,
    ) -> Process:
        """Set the status of a process and merge ``patch`` fields into it."""
        execution = self._require_execution(step)
        process = execution.get_process(process_type)
        if process is None:
            raise ValueError(f"Can't find a process for the given type: {process_type}")

        current = process.status
        if status != current and status not in _TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Process {process_type} of step {step.id} can't move from {current} to {status}"
            )

        if status == "DONE" and process.done_at is None:
            process.done_at = _now()
        elif status in ("STARTED", "PENDING") and current == "FAILED":
            process.error = None
        if status == "FAILED":
            execution.status = "FAILED"
        elif status in ("STARTED", "PENDING") and execution.status == "FAILED":
            # A failed execution reopens when the caller re-invokes a phase.
            execution.status = "PENDING"

        process.status = status
        process.message = get_process_message(process_type, status) or process.message
        for key, value in patch.items():
            setattr(process, key, value)

        if status != current:
            logger.info(f"Step {step.id} {process_type}: {current} -> {status}")
        self._notify(step)
        return process

    def update_execution(
        self, step: Step, status: str, **patch: Any
    ) -> Execution:
        """Set the overall status and merge summary fields."""
        execution = self._require_execution(step)
        if execution.status == "DONE" and status != "DONE":
            raise InvalidTransitionError(
                f"Execution of step {step.id} is already DONE"
            )
        if status == "DONE" and any(p.status != "DONE" for p in execution.process):
            raise InvalidTransitionError(
                f"Execution of step {step.id} has unfinished processes"
            )
        execution.status = status
        for key, value in patch.items():
            setattr(execution, key, value)
        logger.info(f"Step {step.id} execution is {status}")
        self._notify(step)
        return execution

    def _require_execution(self, step: Step) -> Execution:
        if step.execution is None:
            raise ValueError(f"Step {step.id} has no execution record")
        return step.execution

    def _notify(self, step: Step) -> None:
        if self._on_update is not None:
            self._on_update(step)
