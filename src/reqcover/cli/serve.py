"""reqcover serve command - run an ASGI app with coverage collection."""

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from uvicorn.importer import ImportFromStringError, import_from_string

from reqcover.cli.utils import config_dir_option, load_settings, settings_option
from reqcover.core.logging import configure_logging
from reqcover.daemon.lifecycle import run_server


@click.command()
@click.argument("app")
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", "-p", type=int, default=None, help="Port (default from settings)")
@click.option(
    "--app-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory added to sys.path before importing APP",
)
@config_dir_option
@settings_option
@click.pass_context
def serve_command(
    ctx: click.Context,
    app: str,
    host: str | None,
    port: int | None,
    app_dir: Path,
    config_dir: Path | None,
    settings_file: Path | None,
) -> None:
    """Serve APP ("module:attribute") with request-triggered coverage.

    Requests carrying the X-Codeception-CodeCoverage header (or cookie) are
    measured; GET /c3/report/<format> returns reports.
    """
    overrides: dict[str, dict[str, object]] = {}
    if host is not None:
        overrides.setdefault("server", {})["host"] = host
    if port is not None:
        overrides.setdefault("server", {})["port"] = port
    if config_dir is not None:
        overrides["coverage"] = {"config_dir": str(config_dir)}
    config = load_settings(settings_file, **overrides)
    if not (ctx.obj or {}).get("verbose"):
        configure_logging(config=config.logging)

    sys.path.insert(0, str(app_dir.resolve()))
    try:
        target = import_from_string(app)
    except ImportFromStringError as e:
        raise click.ClickException(str(e)) from e

    Console(stderr=True).print(
        f"[bold]reqcover[/bold] serving [cyan]{app}[/cyan] "
        f"on http://{config.server.host}:{config.server.port}"
    )
    asyncio.run(run_server(target, config))
