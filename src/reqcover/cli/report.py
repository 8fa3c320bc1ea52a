"""reqcover report command - build a report from the collected snapshot."""

from pathlib import Path

import click
from rich.console import Console

from reqcover.cli.utils import (
    config_dir_option,
    config_overrides,
    load_settings,
    resolve_workspace,
    settings_option,
)
from reqcover.core.errors import ReqCoverError
from reqcover.report.builder import REPORT_FORMATS, ReportBuilder


@click.command()
@click.argument("report_format", type=click.Choice(REPORT_FORMATS))
@config_dir_option
@settings_option
def report_command(report_format: str, config_dir: Path | None, settings_file: Path | None) -> None:
    """Build a REPORT_FORMAT report from the accumulated coverage.

    Works offline against the same working directory the server writes to,
    so reports can be produced after the server has stopped.
    """
    console = Console(stderr=True)
    config = load_settings(settings_file, **config_overrides(config_dir))
    project, workspace = resolve_workspace(config)

    builder = ReportBuilder(workspace, source_root=project.project_dir)
    try:
        artifact = builder.build(report_format)
    except ReqCoverError as e:
        raise click.ClickException(e.message) from e

    console.print(f"[green]✓[/green] {report_format} report: {artifact}")
    click.echo(str(artifact))
