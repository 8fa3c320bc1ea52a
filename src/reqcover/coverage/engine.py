"""Recording engines.

The coordinator only needs ``start(label)`` and ``stop()``; anything that
satisfies :class:`Recorder` can be injected. The default engine is
coverage.py.

coverage.py keeps one active collector per thread, and a Coverage started
while another is running pauses the older one. Per-request attribution is
therefore exact when each worker process serves one request at a time; the
merge protocol itself does not depend on this.
"""

from __future__ import annotations

import ast
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import coverage
import structlog
from coverage.exceptions import CoverageException

from reqcover.coverage.filters import SourceFilter
from reqcover.coverage.models import CoverageSnapshot, FileCoverage, FunctionCoverage

log = structlog.get_logger(__name__)


class Recorder(Protocol):
    """One measurement, started once and stopped once."""

    def start(self, label: str) -> None:
        """Begin recording executed lines under ``label``."""
        ...

    def stop(self) -> CoverageSnapshot:
        """Stop recording and return the finalized measurement."""
        ...


RecorderFactory = Callable[[SourceFilter], Recorder]


class CoveragePyRecorder:
    """Recorder backed by an in-memory coverage.py measurement."""

    def __init__(self, source_filter: SourceFilter) -> None:
        self.source_filter = source_filter
        self._cov: coverage.Coverage | None = None
        self._label = ""

    def start(self, label: str) -> None:
        include = self.source_filter.include_globs() or None
        self._cov = coverage.Coverage(
            data_file=None,
            config_file=False,
            source=None if include else [str(self.source_filter.project_dir)],
            include=include,
            omit=self.source_filter.omit_globs() or None,
        )
        self._label = label
        self._cov.start()

    def stop(self) -> CoverageSnapshot:
        if self._cov is None:
            raise RuntimeError("recorder was never started")
        cov = self._cov
        cov.stop()

        snapshot = CoverageSnapshot(source_filter=self.source_filter)
        data = cov.get_data()
        for filename in data.measured_files():
            if not self.source_filter.matches(filename):
                continue
            rel = self.source_filter.relative(filename)
            if rel is None:
                continue
            executed = set(data.lines(filename) or ())
            statements = _statements(cov, filename, executed)
            snapshot.files[rel] = FileCoverage(
                path=rel,
                lines={line: 1 if line in executed else 0 for line in statements | executed},
                functions=function_regions(Path(filename)),
            )
            snapshot.runs.setdefault(self._label, {})[rel] = executed
        return snapshot


def _statements(cov: coverage.Coverage, filename: str, executed: set[int]) -> set[int]:
    try:
        _, statements, _, _, _ = cov.analysis2(filename)
    except (CoverageException, OSError) as e:
        log.debug("statement_analysis_failed", file=filename, error=str(e))
        return set(executed)
    return set(statements)


_BRANCH_NODES = (
    ast.If,
    ast.For,
    ast.AsyncFor,
    ast.While,
    ast.IfExp,
    ast.ExceptHandler,
    ast.With,
    ast.AsyncWith,
    ast.comprehension,
    ast.Assert,
)


def _complexity(node: ast.AST) -> int:
    """Cyclomatic complexity of a function body (nested defs excluded)."""
    score = 1
    stack = list(ast.iter_child_nodes(node))
    while stack:
        child = stack.pop()
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)):
            continue
        if isinstance(child, _BRANCH_NODES):
            score += 1
        elif isinstance(child, ast.BoolOp):
            score += len(child.values) - 1
        elif isinstance(child, ast.match_case):
            score += 1
        stack.extend(ast.iter_child_nodes(child))
    return score


def function_regions(path: Path) -> dict[str, FunctionCoverage]:
    """Functions and methods in a Python source file, keyed by qualified name."""
    try:
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except (OSError, SyntaxError, UnicodeDecodeError, ValueError):
        return {}

    regions: dict[str, FunctionCoverage] = {}

    def visit(node: ast.AST, prefix: str) -> None:
        for child in ast.iter_child_nodes(node):
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                name = f"{prefix}{child.name}"
                regions[name] = FunctionCoverage(
                    name=name,
                    start_line=child.lineno,
                    end_line=child.end_lineno or child.lineno,
                    complexity=_complexity(child),
                )
                visit(child, f"{name}.")
            elif isinstance(child, ast.ClassDef):
                visit(child, f"{prefix}{child.name}.")

    visit(tree, "")
    return regions
