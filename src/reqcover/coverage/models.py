"""Accumulated coverage data model.

File-centric: per file, a mapping of executable line -> hit count (0 means
executable but never executed). Alongside it, the lines each labelled test
run touched, so reports can say which run covered a line.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reqcover.coverage.filters import SourceFilter

SNAPSHOT_VERSION = 1


class SnapshotFormatError(ValueError):
    """Serialized snapshot content is malformed."""


@dataclass(frozen=True, slots=True)
class FunctionCoverage:
    """Function/method region within a file."""

    name: str
    start_line: int
    end_line: int
    complexity: int = 1


@dataclass(slots=True)
class FileCoverage:
    """Coverage data for a single file.

    Lines are stored as a dict mapping line number -> hit count.
    Line numbers are 1-based to match source file conventions.
    """

    path: str  # project-relative path
    lines: dict[int, int] = field(default_factory=dict)
    functions: dict[str, FunctionCoverage] = field(default_factory=dict)

    @property
    def lines_found(self) -> int:
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def line_rate(self) -> float:
        if not self.lines:
            return 0.0
        return self.lines_hit / len(self.lines)

    @property
    def uncovered_lines(self) -> list[int]:
        return sorted(line for line, hits in self.lines.items() if hits == 0)

    def function_lines(self, func: FunctionCoverage) -> dict[int, int]:
        """Executable lines inside a function's span."""
        return {
            line: hits
            for line, hits in self.lines.items()
            if func.start_line <= line <= func.end_line
        }

    def function_rate(self, func: FunctionCoverage) -> float:
        lines = self.function_lines(func)
        if not lines:
            return 0.0
        return sum(1 for hits in lines.values() if hits > 0) / len(lines)

    @property
    def functions_hit(self) -> int:
        return sum(1 for f in self.functions.values() if self.function_rate(f) > 0)


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics."""

    files: int
    lines_found: int
    lines_hit: int
    functions_found: int
    functions_hit: int
    line_rate: float


@dataclass(slots=True)
class CoverageSnapshot:
    """Accumulated measurement: files plus per-run line sets.

    ``source_filter`` travels with freshly built snapshots so a recorder can
    be configured from it; it is never serialized and never compared.
    """

    files: dict[str, FileCoverage] = field(default_factory=dict)
    runs: dict[str, dict[str, set[int]]] = field(default_factory=dict)
    source_filter: SourceFilter | None = field(default=None, compare=False, repr=False)

    @property
    def summary(self) -> CoverageSummary:
        lines_found = sum(f.lines_found for f in self.files.values())
        lines_hit = sum(f.lines_hit for f in self.files.values())
        return CoverageSummary(
            files=len(self.files),
            lines_found=lines_found,
            lines_hit=lines_hit,
            functions_found=sum(len(f.functions) for f in self.files.values()),
            functions_hit=sum(f.functions_hit for f in self.files.values()),
            line_rate=lines_hit / lines_found if lines_found > 0 else 0.0,
        )

    def is_empty(self) -> bool:
        return not self.files and not self.runs

    def covering_runs(self, path: str, line: int) -> list[str]:
        """Labels of the runs that executed ``path:line``, sorted."""
        return sorted(label for label, files in self.runs.items() if line in files.get(path, ()))

    def merge(self, other: CoverageSnapshot) -> None:
        """Absorb ``other`` into this snapshot."""
        from reqcover.coverage.merge import merge_into

        merge_into(self, other)

    # -----------------------------------------------------------------
    # Serialization
    # -----------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "files": {
                path: {
                    "lines": {str(line): hits for line, hits in sorted(fc.lines.items())},
                    "functions": [
                        {
                            "name": fn.name,
                            "start_line": fn.start_line,
                            "end_line": fn.end_line,
                            "complexity": fn.complexity,
                        }
                        for fn in sorted(fc.functions.values(), key=lambda f: f.name)
                    ],
                }
                for path, fc in sorted(self.files.items())
            },
            "runs": {
                label: {path: sorted(lines) for path, lines in sorted(files.items())}
                for label, files in sorted(self.runs.items())
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoverageSnapshot:
        if not isinstance(data, dict) or data.get("version") != SNAPSHOT_VERSION:
            raise SnapshotFormatError("unsupported snapshot version")
        try:
            files: dict[str, FileCoverage] = {}
            for path, raw in data.get("files", {}).items():
                functions = {
                    fn["name"]: FunctionCoverage(
                        name=fn["name"],
                        start_line=int(fn["start_line"]),
                        end_line=int(fn["end_line"]),
                        complexity=int(fn.get("complexity", 1)),
                    )
                    for fn in raw.get("functions", [])
                }
                files[path] = FileCoverage(
                    path=path,
                    lines={int(line): int(hits) for line, hits in raw.get("lines", {}).items()},
                    functions=functions,
                )
            runs = {
                label: {path: {int(line) for line in lines} for path, lines in per_file.items()}
                for label, per_file in data.get("runs", {}).items()
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotFormatError(str(e)) from e
        return cls(files=files, runs=runs)

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode()

    @classmethod
    def from_bytes(cls, data: bytes) -> CoverageSnapshot:
        try:
            decoded = json.loads(data)
        except ValueError as e:
            raise SnapshotFormatError(str(e)) from e
        return cls.from_dict(decoded)
