"""Source file filtering from project include/exclude rules.

Patterns are project-relative globs (``app/*``, ``src/**/legacy/*``); ``*``
crosses directory boundaries, as in Codeception's include lists.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path

from reqcover.config.project import CoverageRules, ProjectConfig


@dataclass(frozen=True, slots=True)
class SourceFilter:
    """Which files under ``project_dir`` are measured."""

    project_dir: Path
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    @classmethod
    def from_rules(cls, project_dir: Path, rules: CoverageRules) -> SourceFilter:
        return cls(
            project_dir=project_dir.resolve(),
            include=tuple(_normalize(p) for p in rules.include),
            exclude=tuple(_normalize(p) for p in rules.exclude),
        )

    def relative(self, filename: str) -> str | None:
        """Project-relative ``/`` path, or None when outside the project."""
        try:
            rel = Path(filename).resolve().relative_to(self.project_dir)
        except ValueError:
            return None
        return rel.as_posix()

    def matches(self, filename: str) -> bool:
        rel = self.relative(filename)
        if rel is None:
            return False
        if self.include and not any(fnmatch.fnmatch(rel, p) for p in self.include):
            return False
        return not any(fnmatch.fnmatch(rel, p) for p in self.exclude)

    def include_globs(self) -> list[str]:
        """Absolute include globs for the recording engine."""
        return [str(self.project_dir / p) for p in self.include]

    def omit_globs(self) -> list[str]:
        return [str(self.project_dir / p) for p in self.exclude]


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    # a bare directory means everything below it
    if pattern.endswith("/"):
        pattern += "*"
    return pattern


def build_filter(project: ProjectConfig, suite: str | None = None) -> SourceFilter:
    """Filter for the whole project, or narrowed to one suite's settings.

    Raises:
        ConfigError: If the suite is unknown or its settings are invalid.
    """
    rules = project.suite_rules(suite) if suite else project.coverage
    return SourceFilter.from_rules(project.project_dir, rules)
