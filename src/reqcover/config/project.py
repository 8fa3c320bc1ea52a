"""Project config discovery: codeception.yml / codeception.dist.yml.

The project config tells us where test output goes (and therefore where the
c3tmp working directory lives) and which source files are measured.

    paths:
      tests: tests
      output: tests/_output
    coverage:
      include: [app/*]
      exclude: [app/migrations/*]
    suites:
      acceptance:
        coverage:
          include: [app/web/*]

Per-suite settings come from ``suites.<name>`` in the main file, or from
``<paths.tests>/<name>.suite.yml`` (``.suite.dist.yml`` as fallback).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from reqcover.config.loader import deep_merge, load_yaml
from reqcover.core.errors import ConfigError

CONFIG_FILE = "codeception.yml"
CONFIG_DIST_FILE = "codeception.dist.yml"
WORK_DIR_NAME = "c3tmp"


class ProjectPaths(BaseModel):
    tests: str = "tests"
    output: str = "tests/_output"


class CoverageRules(BaseModel):
    """Include/exclude globs, relative to the project directory."""

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_lists(cls, data: Any) -> Any:
        # whitelist/blacklist predate include/exclude
        if not isinstance(data, dict) or not ({"whitelist", "blacklist"} & data.keys()):
            return data
        data = dict(data)
        whitelist = data.pop("whitelist", None) or {}
        blacklist = data.pop("blacklist", None) or {}
        if not isinstance(whitelist, dict) or not isinstance(blacklist, dict):
            raise ValueError("whitelist/blacklist must be mappings")
        data["include"] = [*(data.get("include") or []), *(whitelist.get("include") or [])]
        data["exclude"] = [
            *(data.get("exclude") or []),
            *(whitelist.get("exclude") or []),
            *(blacklist.get("include") or []),
        ]
        return data


class ProjectConfig(BaseModel):
    """Resolved project config rooted at the directory it was found in."""

    config_dir: Path
    config_file: Path
    paths: ProjectPaths = Field(default_factory=ProjectPaths)
    coverage: CoverageRules = Field(default_factory=CoverageRules)
    suites: dict[str, Any] = Field(default_factory=dict)

    @property
    def project_dir(self) -> Path:
        return self.config_dir

    @property
    def output_dir(self) -> Path:
        return self.config_dir / self.paths.output

    @property
    def work_dir(self) -> Path:
        return self.output_dir / WORK_DIR_NAME

    def suite_rules(self, suite: str) -> CoverageRules:
        """Coverage rules for one suite, layered over the global rules."""
        base = self.coverage.model_dump()
        override = self._suite_settings(suite)
        merged = deep_merge(base, override.get("coverage") or {})
        try:
            return CoverageRules.model_validate(merged)
        except ValidationError as e:
            raise ConfigError.invalid_value(f"suites.{suite}.coverage", merged, str(e)) from e

    def _suite_settings(self, suite: str) -> dict[str, Any]:
        inline = self.suites.get(suite) if isinstance(self.suites, dict) else None
        if isinstance(inline, dict):
            return inline
        tests_dir = self.config_dir / self.paths.tests
        for name in (f"{suite}.suite.yml", f"{suite}.suite.dist.yml"):
            candidate = tests_dir / name
            if candidate.is_file():
                return load_yaml(candidate)
        raise ConfigError.suite_not_found(suite)


def find_config_file(config_dir: Path, config_name: str | None = None) -> Path:
    """Locate the project config, honouring an explicit file name.

    Raises:
        ConfigError: If neither the requested file nor the dist file exists.
    """
    config_file = config_dir / (config_name or CONFIG_FILE)
    if config_file.is_file():
        return config_file
    dist_file = config_dir / CONFIG_DIST_FILE
    if dist_file.is_file():
        return dist_file
    raise ConfigError.file_not_found(str(config_file))


def load_project_config(config_dir: Path, config_name: str | None = None) -> ProjectConfig:
    """Discover and parse the project config under ``config_dir``."""
    config_dir = config_dir.resolve()
    config_file = find_config_file(config_dir, config_name)
    data = load_yaml(config_file)

    # codeception.yml may include a nested dist file
    if config_file.name != CONFIG_DIST_FILE and (config_dir / CONFIG_DIST_FILE).is_file():
        data = deep_merge(load_yaml(config_dir / CONFIG_DIST_FILE), data)

    try:
        return ProjectConfig(
            config_dir=config_dir,
            config_file=config_file,
            paths=data.get("paths") or {},
            coverage=data.get("coverage") or {},
            suites=_suites_mapping(data.get("suites")),
        )
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def _suites_mapping(raw: Any) -> dict[str, Any]:
    # `suites` may be a list of names or a mapping of name -> settings
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, list):
        return {str(name): None for name in raw}
    return {}
