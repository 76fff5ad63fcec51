"""Shared helpers for phasegate commands: wiring and rendering."""

from typing import Callable, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from phasegate.config.loader import load_config
from phasegate.core.exceptions import OrchestrationError, PhaseExecutionError, PhaseGateError
from phasegate.core.phase_state import Phase, PhaseStatus, RunStatus, StateRecord
from phasegate.orchestrator.dispatcher import (
    CLIDispatcher,
    DispatchResult,
    build_dispatcher,
    create_executor,
)

console = Console()

STATUS_STYLES = {
    PhaseStatus.PENDING: "dim",
    PhaseStatus.RUNNING: "yellow",
    PhaseStatus.AWAITING_APPROVAL: "bold cyan",
    PhaseStatus.APPROVED: "green",
    PhaseStatus.FAILED: "red",
    PhaseStatus.SKIPPED: "dim italic",
}


def get_dispatcher(ctx: click.Context, read_only: bool = False) -> CLIDispatcher:
    """Build the dispatcher once per invocation from the loaded configuration.

    A read-only dispatcher skips the executor and target context, so
    inspecting runs works even when those settings are broken.
    """
    obj = ctx.ensure_object(dict)
    if "dispatcher" in obj:
        return obj["dispatcher"]

    key = "reader" if read_only else "dispatcher"
    if key not in obj:
        config = load_config(config_path=obj.get("config_path"))
        if read_only:
            obj[key] = build_dispatcher(config, read_only=True)
        else:
            obj[key] = build_dispatcher(config, executor=create_executor(config))
    return obj[key]


def dispatch(
    ctx: click.Context,
    action: Callable[[CLIDispatcher], DispatchResult],
    read_only: bool = False,
) -> DispatchResult:
    """Run a dispatcher action, turning phasegate errors into CLI errors."""
    try:
        return action(get_dispatcher(ctx, read_only=read_only))
    except PhaseGateError as e:
        _display_error(e)
        raise click.ClickException(str(e)) from e


def _display_error(error: PhaseGateError) -> None:
    if isinstance(error, PhaseExecutionError) and error.phase is not None:
        console.print(
            f"[red]Phase {Phase(error.phase).label} failed.[/red] "
            f"Retry with: [bold]phasegate phase {error.phase}[/bold]"
        )
    elif isinstance(error, OrchestrationError) and error.run_id:
        console.print(f"[dim]Inspect with: phasegate status --run {error.run_id}[/dim]")


def display_result(result: DispatchResult, verbose: bool = False) -> None:
    """Print the checkpoint panel or the run's current position."""
    record = result.record

    if result.is_checkpoint:
        _display_checkpoint(result)
    elif record.run_status == RunStatus.COMPLETED:
        console.print(f"[green]Run {result.run.run_id} completed.[/green]")
    elif result.phase is None:
        console.print(f"[yellow]Run {result.run.run_id} has not started a phase yet.[/yellow]")
    else:
        console.print(
            f"Run {result.run.run_id}: phase {int(result.phase)} ({result.phase.label}) "
            f"is {result.status.value}. No phase is awaiting a decision."
        )

    if verbose:
        display_phase_table(record)


def _display_checkpoint(result: DispatchResult) -> None:
    phase = result.phase
    record = result.record
    summary = result.artifact.summary if result.artifact else ""
    revision = result.artifact.revision if result.artifact else 0

    lines = [
        f"[bold]Run:[/bold] {result.run.run_id}",
        f"[bold]Phase:[/bold] {int(phase)}/{len(Phase)} {phase.label}"
        + (f" (revision {revision})" if revision > 1 else ""),
        f"[bold]Summary:[/bold] {summary or '[dim]none[/dim]'}",
        f"[bold]Artifact:[/bold] phasegate show {int(phase)}",
        "",
    ]

    if record.is_terminal():
        skipped = [str(int(e.phase)) for e in record.phases if e.status == PhaseStatus.SKIPPED]
        if skipped:
            lines.append(f"Quick run finished; phases {', '.join(skipped)} skipped.")
    else:
        lines.extend(
            [
                "[bold]Next steps:[/bold]",
                "  phasegate approve                 # approve and continue",
                "  phasegate approve --stop          # approve only",
                '  phasegate revise "<feedback>"     # re-run with feedback',
            ]
        )

    console.print(
        Panel(
            "\n".join(lines),
            title=f"Checkpoint: {phase.label} awaiting approval",
            border_style="cyan",
        )
    )


def display_phase_table(record: StateRecord, title: Optional[str] = None) -> None:
    """Print one row per phase with status and timestamps."""
    table = Table(title=title)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Phase")
    table.add_column("Status", no_wrap=True)
    table.add_column("Started")
    table.add_column("Ended")
    table.add_column("Attempts", justify="right")

    for entry in record.phases:
        style = STATUS_STYLES.get(entry.status, "")
        table.add_row(
            str(int(entry.phase)),
            entry.phase.label,
            f"[{style}]{entry.status.value}[/{style}]" if style else entry.status.value,
            _format_time(entry.started_at),
            _format_time(entry.ended_at),
            str(entry.attempts),
        )

    console.print(table)


def _format_time(value) -> str:
    return value.strftime("%m-%d %H:%M") if value else "-"
