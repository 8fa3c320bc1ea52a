"""CLI utilities."""

from pathlib import Path
from typing import Any

import click

from reqcover.config.loader import load_config
from reqcover.config.models import ReqCoverConfig
from reqcover.config.project import ProjectConfig, load_project_config
from reqcover.core.errors import ReqCoverError
from reqcover.coverage.store import Workspace


def load_settings(settings_file: Path | None, **overrides: Any) -> ReqCoverConfig:
    """Load reqcover settings, turning config errors into CLI errors."""
    try:
        return load_config(settings_file, **overrides)
    except ReqCoverError as e:
        raise click.ClickException(e.message) from e


def resolve_workspace(config: ReqCoverConfig) -> tuple[ProjectConfig, Workspace]:
    """Locate the project config and the working directory it implies.

    Raises:
        click.ClickException: If the project config cannot be loaded
    """
    try:
        project = load_project_config(Path(config.coverage.config_dir))
    except ReqCoverError as e:
        raise click.ClickException(e.message) from e
    work_dir = Path(config.coverage.work_dir) if config.coverage.work_dir else project.work_dir
    return project, Workspace(work_dir)


def config_overrides(config_dir: Path | None) -> dict[str, Any]:
    if config_dir is None:
        return {}
    return {"coverage": {"config_dir": str(config_dir)}}


settings_option = click.option(
    "--settings",
    "settings_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="reqcover settings file (default: ./reqcover.yaml if present)",
)

config_dir_option = click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding codeception.yml",
)
