"""Command line interface for executing and inspecting steps."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from bridgestep import KeypairSigner, RouteApiClient, StepExecutor, load_config
from bridgestep.contracts import Step
from bridgestep.errors import ExecutionError

app = typer.Typer(help="CLI for bridgestep step execution")

step_app = typer.Typer(help="Commands for executing and inspecting steps")

app.add_typer(step_app, name="step")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """bridgestep CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_step(path: Path) -> Step:
    if not path.exists():
        typer.secho(f"Step file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return Step.from_json(path.read_text())


def _echo_execution(step: Step) -> None:
    if step.execution is None:
        typer.echo(f"Step {step.id}: not started")
        return
    typer.echo(f"Step {step.id}: {step.execution.status}")
    for process in step.execution.process:
        line = f"- {process.type}: {process.status}"
        if process.tx_hash:
            line += f" {process.tx_hash}"
        typer.echo(line)
        if process.tx_link:
            typer.echo(f"    {process.tx_link}")
        if process.substatus_message:
            typer.echo(f"    {process.substatus_message}")
        if process.error:
            typer.secho(
                f"    {process.error.code}: {process.error.message}", fg=typer.colors.RED
            )


@step_app.command("show")
def step_show(step_file: Path) -> None:
    """
    Show the execution record stored in a step JSON file.

    Example:
        bridgestep step show ./step.json
        # Output: Step 0x12ab: PENDING
        #         - CROSS_CHAIN: DONE 5h3x...
        #         - RECEIVING_CHAIN: PENDING
    """
    _echo_execution(_load_step(step_file))


@step_app.command("execute")
def step_execute(
    step_file: Path,
    keypair: Path = typer.Option(..., help="Solana CLI keypair file used for signing"),
    interaction: Optional[bool] = typer.Option(
        None,
        "--interaction/--no-interaction",
        help="Stop before signing when disabled (defaults to configuration)",
    ),
    output: Optional[Path] = typer.Option(
        None, help="Where to write the updated step (default: overwrite STEP_FILE)"
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Config YAML"),
) -> None:
    """
    Execute a step and write back its updated execution record.

    Running the command again on the written file resumes the step: a send
    phase that already has a transaction hash goes straight to confirmation.

    Example:
        bridgestep step execute ./step.json --keypair ~/.config/solana/id.json
        bridgestep step execute ./step.json --keypair ./id.json --no-interaction
    """
    config = load_config(config_path)
    step = _load_step(step_file)
    allow_user_interaction = (
        config.execution.allow_user_interaction if interaction is None else interaction
    )
    signer = KeypairSigner.from_file(keypair)
    target = output or step_file

    async def _run() -> Step:
        executor = StepExecutor.from_config(signer, config=config)
        try:
            return await executor.execute_step(step, allow_user_interaction)
        finally:
            await executor.close()

    result = step
    try:
        result = asyncio.run(_run())
    except ExecutionError as exc:
        _echo_execution(step)
        typer.secho(f"Execution failed ({exc.code.value}): {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except Exception as exc:
        _echo_execution(step)
        typer.secho(f"Execution failed: {exc!r}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    finally:
        # Always persist the execution record, failed or not
        target.write_text(result.to_json())

    _echo_execution(result)


@step_app.command("status")
def step_status(
    tx_hash: str,
    from_chain: Optional[int] = typer.Option(None, help="Source chain id"),
    to_chain: Optional[int] = typer.Option(None, help="Destination chain id"),
    bridge: Optional[str] = typer.Option(None, help="Bridge tool key"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Config YAML"),
) -> None:
    """
    Query the status service once for a transfer.

    Example:
        bridgestep step status 5h3x... --from-chain 1151111081099710 --to-chain 1
    """
    config = load_config(config_path)

    async def _run():
        async with RouteApiClient(config.api) as api:
            return await api.fetch_receiving_leg_status(
                tx_hash, bridge=bridge, from_chain=from_chain, to_chain=to_chain
            )

    try:
        status = asyncio.run(_run())
    except ExecutionError as exc:
        typer.secho(f"Status request failed: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"{tx_hash}: {status.status}" + (f" ({status.substatus})" if status.substatus else ""))
    if status.receiving and status.receiving.tx_hash:
        typer.echo(f"Receiving transaction: {status.receiving.tx_hash}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
