"""Main CLI entry point for phasegate."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from phasegate.cli.commands.decide import approve_command, revise_command
from phasegate.cli.commands.init import init_command
from phasegate.cli.commands.report import runs_command, show_command, status_command
from phasegate.cli.commands.run import phase_command, quick_command, resume_command
from phasegate.cli.common import dispatch, display_result
from phasegate.core.exceptions import PhaseGateError

console = Console()


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: Optional[Path]) -> None:
    """phasegate: five-phase analysis runs with a human checkpoint after each phase.

    Phases run in order: Scan, Critique, Plan, Execute, Validate. After each
    phase the process stops and waits for approve or revise.

    \b
    Examples:
        phasegate                     # New run, execute Scan
        phasegate approve             # Approve and run the next phase
        phasegate revise "more depth" # Re-run the current phase
        phasegate phase 3             # Run Plan on the latest run
        phasegate resume              # Show the pending checkpoint again
        phasegate quick               # Scan only, skip the rest
        phasegate status              # Phase table of the latest run
    """
    ctx.ensure_object(dict)

    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config

    if verbose:
        console.print("[dim]phasegate starting with verbose output enabled[/dim]")

    if ctx.invoked_subcommand is None:
        result = dispatch(ctx, lambda d: d.full())
        display_result(result, verbose=verbose)


cli.add_command(init_command, name="init")
cli.add_command(phase_command, name="phase")
cli.add_command(quick_command, name="quick")
cli.add_command(resume_command, name="resume")
cli.add_command(approve_command, name="approve")
cli.add_command(revise_command, name="revise")
cli.add_command(status_command, name="status")
cli.add_command(runs_command, name="runs")
cli.add_command(show_command, name="show")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except PhaseGateError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
