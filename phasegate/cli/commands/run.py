"""phasegate commands that execute phases: phase, quick, resume."""

from typing import Optional

import click

from phasegate.cli.common import dispatch, display_result
from phasegate.core.run_manager import LATEST


@click.command()
@click.argument("number", type=click.IntRange(1, 5))
@click.option(
    "--strict/--trust",
    default=None,
    help="Require earlier phases to be approved (default: configured policy)",
)
@click.pass_context
def phase_command(ctx: click.Context, number: int, strict: Optional[bool]) -> None:
    """Run phase NUMBER (1-5) on the latest run.

    Creates a run if none exists. A failed phase is retried the same way.

    \b
    Examples:
        phasegate phase 3           # Run the Plan phase
        phasegate phase 3 --strict  # Refuse unless phases 1-2 are approved
    """
    result = dispatch(ctx, lambda d: d.phase(number, strict=strict))
    display_result(result, verbose=ctx.obj.get("verbose", False))


@click.command()
@click.pass_context
def quick_command(ctx: click.Context) -> None:
    """Run the Scan phase only and skip the rest.

    \b
    Examples:
        phasegate quick
    """
    result = dispatch(ctx, lambda d: d.quick())
    display_result(result, verbose=ctx.obj.get("verbose", False))


@click.command()
@click.option("--run", "run_id", default=LATEST, help="Run id (default: latest)")
@click.option(
    "--rerun",
    is_flag=True,
    help="Execute the active phase again instead of re-presenting it",
)
@click.pass_context
def resume_command(ctx: click.Context, run_id: str, rerun: bool) -> None:
    """Show the phase waiting for a decision.

    Reads the saved state without changing it, unless --rerun is given.

    \b
    Examples:
        phasegate resume
        phasegate resume --run 20260101-120000-000000
        phasegate resume --rerun    # Re-execute an interrupted phase
    """
    result = dispatch(ctx, lambda d: d.resume(run_id, rerun=rerun))
    display_result(result, verbose=ctx.obj.get("verbose", False))
