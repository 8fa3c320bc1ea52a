"""Report writer protocol and shared XML helpers."""

import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Protocol

from reqcover.coverage.models import CoverageSnapshot, FileCoverage, FunctionCoverage

GENERATOR = "reqcover"


class ReportWriter(Protocol):
    """Protocol for report format writers.

    Each writer renders a merged CoverageSnapshot into one format.
    """

    @property
    def format_id(self) -> str:
        """Format identifier (e.g., 'clover', 'cobertura')."""
        ...

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        """Render ``snapshot`` to ``target`` (a file, or a directory for
        multi-file formats) and return ``target``.

        Args:
            snapshot: Merged coverage data.
            target: Output file or directory.
            source_root: Directory that project-relative paths resolve against.
        """
        ...


def timestamp() -> int:
    return int(time.time())


def package_name(path: str) -> str:
    """Dotted directory of a project-relative path (``app/web/x.py`` -> ``app.web``)."""
    parent = Path(path).parent.as_posix()
    return "" if parent == "." else parent.replace("/", ".")


def module_name(path: str) -> str:
    return Path(path).with_suffix("").as_posix().replace("/", ".")


def count_loc(source_root: Path, fc: FileCoverage) -> int:
    """Physical line count, falling back to the last measured line."""
    try:
        with (source_root / fc.path).open("rb") as f:
            return sum(1 for _ in f)
    except OSError:
        return max(fc.lines, default=0)


def crap(complexity: int, rate: float) -> float:
    """Change Risk Anti-Patterns score for a method with line coverage ``rate``."""
    return round(complexity**2 * (1.0 - rate) ** 3 + complexity, 2)


def function_hits(fc: FileCoverage, func: FunctionCoverage) -> int:
    return 1 if fc.function_rate(func) > 0 else 0


def percent(part: int, whole: int) -> str:
    if whole == 0:
        return "0.00"
    return f"{part / whole * 100:.2f}"


def write_xml(root: ET.Element, target: Path) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    tree = ET.ElementTree(root)
    ET.indent(tree)
    tree.write(target, encoding="UTF-8", xml_declaration=True)
    return target
