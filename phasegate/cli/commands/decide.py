"""phasegate commands that record operator decisions: approve, revise."""

import click

from phasegate.cli.common import console, dispatch, display_result
from phasegate.core.phase_state import PhaseStatus
from phasegate.core.run_manager import LATEST


@click.command()
@click.option("--run", "run_id", default=LATEST, help="Run id (default: latest)")
@click.option(
    "--stop",
    is_flag=True,
    help="Approve without starting the next phase",
)
@click.pass_context
def approve_command(ctx: click.Context, run_id: str, stop: bool) -> None:
    """Approve the phase awaiting approval and continue.

    \b
    Examples:
        phasegate approve           # Approve and run the next phase
        phasegate approve --stop    # Approve only
    """
    result = dispatch(ctx, lambda d: d.approve(run_id, advance=not stop))

    if result.status == PhaseStatus.APPROVED:
        console.print(
            f"[green]Approved phase {int(result.phase)} ({result.phase.label})[/green] "
            f"for run {result.run.run_id}"
        )
        if not result.record.is_terminal():
            console.print(
                f"[dim]Continue with: phasegate phase {int(result.phase) + 1}[/dim]"
            )
    else:
        display_result(result, verbose=ctx.obj.get("verbose", False))


@click.command()
@click.argument("feedback")
@click.option("--run", "run_id", default=LATEST, help="Run id (default: latest)")
@click.pass_context
def revise_command(ctx: click.Context, feedback: str, run_id: str) -> None:
    """Re-run the phase awaiting approval with FEEDBACK.

    \b
    Examples:
        phasegate revise "Cover the checkout flow as well"
    """
    if not feedback.strip():
        raise click.BadParameter("feedback must not be empty", param_hint="FEEDBACK")

    result = dispatch(ctx, lambda d: d.revise(feedback, run_id))
    display_result(result, verbose=ctx.obj.get("verbose", False))
