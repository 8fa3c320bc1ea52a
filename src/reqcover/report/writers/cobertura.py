"""Cobertura XML writer, rendered by coverage.py's XML reporter."""

from pathlib import Path

from reqcover.coverage.models import CoverageSnapshot

from .coveragepy import load_coverage


class CoberturaWriter:
    """Writer for Cobertura XML format."""

    @property
    def format_id(self) -> str:
        return "cobertura"

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        target.parent.mkdir(parents=True, exist_ok=True)
        cov = load_coverage(snapshot, source_root)
        # sources that vanished since measurement are skipped
        cov.xml_report(outfile=str(target), ignore_errors=True)
        return target
