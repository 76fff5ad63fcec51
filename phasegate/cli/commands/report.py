"""phasegate commands that only read runs: status, runs, show."""

import json
from typing import Optional

import click
from rich.markdown import Markdown
from rich.table import Table

from phasegate.cli.common import console, dispatch, display_phase_table, get_dispatcher
from phasegate.core.exceptions import PhaseGateError
from phasegate.core.phase_state import Phase
from phasegate.core.run_manager import LATEST


@click.command()
@click.option("--run", "run_id", default=LATEST, help="Run id (default: latest)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_context
def status_command(ctx: click.Context, run_id: str, output_format: str) -> None:
    """Show the phase table of a run.

    \b
    Examples:
        phasegate status
        phasegate status --run 20260101-120000-000000 --format json
    """
    result = dispatch(ctx, lambda d: d.status(run_id), read_only=True)
    record = result.record

    if output_format == "json":
        click.echo(json.dumps(record.model_dump(mode="json"), indent=2))
        return

    console.print(
        f"[bold]Run:[/bold] {record.run_id}  "
        f"[bold]Mode:[/bold] {record.mode.value}  "
        f"[bold]Status:[/bold] {record.run_status.value}"
    )
    display_phase_table(record)

    if record.error_message:
        console.print(f"[red]Last error:[/red] {record.error_message}")

    last = record.decisions[-1] if record.decisions else None
    if last and last.feedback:
        console.print(f"[dim]Last feedback (phase {int(last.phase)}): {last.feedback}[/dim]")


@click.command()
@click.pass_context
def runs_command(ctx: click.Context) -> None:
    """List runs, newest first.

    \b
    Examples:
        phasegate runs
    """
    try:
        dispatcher = get_dispatcher(ctx, read_only=True)
        run_ids = dispatcher.run_manager.list_runs()
    except PhaseGateError as e:
        raise click.ClickException(str(e)) from e

    if not run_ids:
        console.print("[yellow]No runs yet.[/yellow] Start one with: phasegate")
        return

    table = Table(title="Runs")
    table.add_column("Run", style="cyan", no_wrap=True)
    table.add_column("Mode")
    table.add_column("Status")
    table.add_column("Phase")

    for run_id in reversed(run_ids):
        try:
            result = dispatcher.status(run_id)
        except PhaseGateError as e:
            table.add_row(run_id, "-", "[red]unreadable[/red]", str(e))
            continue
        record = result.record
        phase = (
            f"{int(result.phase)} {result.phase.label} ({result.status.value})"
            if result.phase
            else "-"
        )
        table.add_row(run_id, record.mode.value, record.run_status.value, phase)

    console.print(table)


@click.command()
@click.argument("phase", type=click.IntRange(1, 5))
@click.option("--run", "run_id", default=LATEST, help="Run id (default: latest)")
@click.option("--raw", is_flag=True, help="Print the artifact file as stored")
@click.pass_context
def show_command(ctx: click.Context, phase: int, run_id: str, raw: bool) -> None:
    """Print the artifact produced by PHASE.

    \b
    Examples:
        phasegate show 1
        phasegate show 3 --raw
    """
    try:
        dispatcher = get_dispatcher(ctx, read_only=True)
        run = dispatcher.run_manager.resolve_run(run_id)
        artifact_store = dispatcher.controller.artifact_store
        if raw:
            text = artifact_store.artifact_file(run, Phase(phase)).read_text(encoding="utf-8")
            click.echo(text, nl=False)
            return
        artifact = artifact_store.load(run, Phase(phase))
    except (PhaseGateError, OSError) as e:
        raise click.ClickException(str(e)) from e

    _display_artifact(artifact.phase, artifact.revision, artifact.summary, artifact.content)


def _display_artifact(phase: Phase, revision: int, summary: Optional[str], content: str) -> None:
    console.print(f"[bold cyan]Phase {int(phase)}: {phase.label}[/bold cyan] (revision {revision})")
    if summary:
        console.print(f"[dim]{summary}[/dim]")
    console.print()
    console.print(Markdown(content))
