"""reqcover CLI - reqcover command."""

import click

from reqcover.cli.clear import clear_command
from reqcover.cli.report import report_command
from reqcover.cli.serve import serve_command
from reqcover.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="reqcover")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """reqcover - request-triggered code coverage for functional tests."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(serve_command, name="serve")
cli.add_command(report_command, name="report")
cli.add_command(clear_command, name="clear")


if __name__ == "__main__":
    cli()
