"""Example showing how to execute a step with a local Solana keypair."""

import asyncio
import sys
from pathlib import Path

from bridgestep import KeypairSigner, StepExecutor, StatusManager
from bridgestep.contracts import Step


def print_progress(step: Step) -> None:
    for process in step.execution.process:
        print(f"{process.type}: {process.status} {process.message or ''}")


async def main():
    step_path = Path(sys.argv[1])
    keypair_path = sys.argv[2]

    step = Step.from_json(step_path.read_text())
    executor = StepExecutor.from_config(
        KeypairSigner.from_file(keypair_path),
        status_manager=StatusManager(on_update=print_progress),
    )
    try:
        step = await executor.execute_step(step)
    finally:
        await executor.close()
        # Keep the execution record so a later run can resume
        step_path.write_text(step.to_json())


if __name__ == "__main__":
    asyncio.run(main())
