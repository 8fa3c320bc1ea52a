"""Navigable HTML report writer.

coverage.py's HTML reporter renders the index and annotated sources; each
executed line lists the runs that hit it.
"""

from pathlib import Path

from reqcover.coverage.models import CoverageSnapshot

from .coveragepy import load_coverage


class HtmlWriter:
    """Writer for the browsable HTML report."""

    @property
    def format_id(self) -> str:
        return "html"

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        target.mkdir(parents=True, exist_ok=True)
        cov = load_coverage(snapshot, source_root)
        cov.html_report(
            directory=str(target),
            title=f"Coverage for {source_root.name}",
            show_contexts=True,
            ignore_errors=True,
        )
        return target
