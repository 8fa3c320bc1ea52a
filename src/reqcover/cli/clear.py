"""reqcover clear command - delete the accumulated coverage and reports."""

from pathlib import Path

import click
import questionary
from rich.console import Console

from reqcover.cli.utils import (
    config_dir_option,
    config_overrides,
    load_settings,
    resolve_workspace,
    settings_option,
)
from reqcover.coverage.store import clear_directory


@click.command()
@config_dir_option
@settings_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def clear_command(config_dir: Path | None, settings_file: Path | None, yes: bool) -> None:
    """Empty the working directory (snapshot, reports and error log)."""
    console = Console(stderr=True)
    config = load_settings(settings_file, **config_overrides(config_dir))
    _, workspace = resolve_workspace(config)
    work_dir = workspace.work_dir

    if not work_dir.is_dir() or not any(work_dir.iterdir()):
        console.print("[yellow]Nothing to clear[/yellow] - working directory is empty")
        return

    console.print(f"\n[bold]Everything in {work_dir} will be permanently deleted.[/bold]\n")
    if not yes:
        answer = questionary.confirm("Are you sure?", default=False).ask()
        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return

    try:
        removed = clear_directory(work_dir)
    except OSError as e:
        raise click.ClickException(f"Failed to clear {work_dir}: {e}") from e
    console.print(f"[green]✓[/green] Removed {removed} entries from {work_dir}")
