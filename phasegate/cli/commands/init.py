"""phasegate init command."""

from pathlib import Path

import click
from rich.console import Console

from phasegate.config.loader import CONFIG_FILE_NAME, PROJECT_DIR_NAME, save_config
from phasegate.config.models import PhaseGateConfig
from phasegate.core.exceptions import PhaseGateError

console = Console()

GITIGNORE_CONTENT = """# phasegate generated files
runs/
*.tmp
"""


@click.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite an existing .phasegate configuration",
)
def init_command(force: bool) -> None:
    """Initialize phasegate in the current project.

    Creates a .phasegate directory with the default configuration. Runs
    are stored under .phasegate/runs.

    \b
    Examples:
        phasegate init            # Initialize with default settings
        phasegate init --force    # Rewrite the default configuration
    """
    project_root = Path.cwd()
    project_dir = project_root / PROJECT_DIR_NAME

    if project_dir.exists() and not force:
        console.print(
            f"[yellow]phasegate already initialized in {project_root}[/yellow]\n"
            "Use --force to reinitialize"
        )
        return

    try:
        project_dir.mkdir(exist_ok=True)
        (project_dir / "runs").mkdir(exist_ok=True)

        config_path = project_dir / CONFIG_FILE_NAME
        if not config_path.exists() or force:
            save_config(PhaseGateConfig(), config_path)

        gitignore_path = project_dir / ".gitignore"
        if not gitignore_path.exists() or force:
            gitignore_path.write_text(GITIGNORE_CONTENT, encoding="utf-8")

    except (OSError, PhaseGateError) as e:
        raise click.ClickException(f"Failed to initialize phasegate: {e}") from e

    console.print(f"[green]OK[/green] Initialized phasegate in {project_root}")
    console.print(f"  Configuration: {config_path.relative_to(project_root)}")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  phasegate          # Start a full run at the Scan phase")
    console.print("  phasegate quick    # Scan only")
