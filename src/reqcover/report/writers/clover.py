"""Clover XML writer.

Structure:
<coverage generated="..." clover="...">
  <project timestamp="..." name="...">
    <package name="app.web">
      <file name="views.py" path="/abs/app/web/views.py">
        <line num="3" type="method" name="index" complexity="2" crap="2" count="1"/>
        <line num="4" type="stmt" count="1"/>
        <metrics .../>
      </file>
    </package>
    <metrics files="..." .../>
  </project>
</coverage>
"""

import xml.etree.ElementTree as ET
from collections import defaultdict
from pathlib import Path

from reqcover.coverage.models import CoverageSnapshot, FileCoverage

from .base import GENERATOR, count_loc, crap, function_hits, package_name, timestamp, write_xml


class CloverWriter:
    """Writer for Clover XML format."""

    @property
    def format_id(self) -> str:
        return "clover"

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        generated = str(timestamp())
        root = ET.Element("coverage", generated=generated, clover=GENERATOR)
        project = ET.SubElement(root, "project", timestamp=generated, name=source_root.name)

        totals: dict[str, int] = defaultdict(int)
        packages: dict[str, list[FileCoverage]] = defaultdict(list)
        for path in sorted(snapshot.files):
            packages[package_name(path)].append(snapshot.files[path])

        loose = packages.pop("", [])
        for fc in loose:
            self._file(project, fc, source_root, totals)
        for name, files in sorted(packages.items()):
            package = ET.SubElement(project, "package", name=name)
            for fc in files:
                self._file(package, fc, source_root, totals)

        ET.SubElement(
            project,
            "metrics",
            files=str(len(snapshot.files)),
            **{key: str(value) for key, value in sorted(totals.items())},
        )
        return write_xml(root, target)

    def _file(
        self,
        parent: ET.Element,
        fc: FileCoverage,
        source_root: Path,
        totals: dict[str, int],
    ) -> None:
        elem = ET.SubElement(
            parent, "file", name=Path(fc.path).name, path=str(source_root / fc.path)
        )

        method_lines: dict[int, ET.Element] = {}
        for func in sorted(fc.functions.values(), key=lambda f: f.start_line):
            method_lines[func.start_line] = ET.Element(
                "line",
                num=str(func.start_line),
                type="method",
                name=func.name,
                visibility="public",
                complexity=str(func.complexity),
                crap=str(crap(func.complexity, fc.function_rate(func))),
                count=str(function_hits(fc, func)),
            )

        for line in sorted(set(fc.lines) | set(method_lines)):
            if line in method_lines:
                elem.append(method_lines[line])
            else:
                ET.SubElement(elem, "line", num=str(line), type="stmt", count=str(fc.lines[line]))

        loc = count_loc(source_root, fc)
        metrics = {
            "loc": loc,
            "ncloc": loc,
            "classes": 0,
            "methods": len(fc.functions),
            "coveredmethods": fc.functions_hit,
            "conditionals": 0,
            "coveredconditionals": 0,
            "statements": fc.lines_found,
            "coveredstatements": fc.lines_hit,
            "elements": len(fc.functions) + fc.lines_found,
            "coveredelements": fc.functions_hit + fc.lines_hit,
        }
        ET.SubElement(elem, "metrics", **{key: str(value) for key, value in metrics.items()})
        for key, value in metrics.items():
            totals[key] += value
