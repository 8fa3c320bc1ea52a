"""Structured per-file XML writer (PHPUnit coverage XML layout).

Output directory:
    index.xml            project totals, one <file> entry per source file
    <path>.xml           per-line coverage with the runs that covered each line
"""

import xml.etree.ElementTree as ET
from pathlib import Path

from reqcover.coverage.models import CoverageSnapshot, FileCoverage

from .base import GENERATOR, count_loc, percent, timestamp, write_xml

NAMESPACE = "https://schema.phpunit.de/coverage/1.0"


def _totals(parent: ET.Element, fc_list: list[FileCoverage], loc: int) -> None:
    executable = sum(fc.lines_found for fc in fc_list)
    executed = sum(fc.lines_hit for fc in fc_list)
    methods = sum(len(fc.functions) for fc in fc_list)
    tested = sum(fc.functions_hit for fc in fc_list)
    totals = ET.SubElement(parent, "totals")
    ET.SubElement(
        totals,
        "lines",
        total=str(loc),
        comments="0",
        code=str(loc),
        executable=str(executable),
        executed=str(executed),
        percent=percent(executed, executable),
    )
    ET.SubElement(
        totals, "methods", count=str(methods), tested=str(tested), percent=percent(tested, methods)
    )


class PhpunitXmlWriter:
    """Writer for the directory-of-XML coverage format."""

    @property
    def format_id(self) -> str:
        return "phpunit"

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        target.mkdir(parents=True, exist_ok=True)

        index = ET.Element("phpunit", xmlns=NAMESPACE)
        ET.SubElement(
            index,
            "build",
            time=str(timestamp()),
            phpunit=GENERATOR,
            coverage=GENERATOR,
        )
        project = ET.SubElement(index, "project", source=str(source_root))
        tests = ET.SubElement(project, "tests")
        for label in sorted(snapshot.runs):
            ET.SubElement(tests, "test", name=label, size="unknown", status="0")

        files = [snapshot.files[path] for path in sorted(snapshot.files)]
        locs = {fc.path: count_loc(source_root, fc) for fc in files}

        directory = ET.SubElement(project, "directory", name="/")
        _totals(directory, files, sum(locs.values()))
        for fc in files:
            href = f"{fc.path}.xml"
            entry = ET.SubElement(directory, "file", name=fc.path, href=href)
            _totals(entry, [fc], locs[fc.path])
            self._file_report(snapshot, fc, target / href, locs[fc.path])

        write_xml(index, target / "index.xml")
        return target

    def _file_report(
        self,
        snapshot: CoverageSnapshot,
        fc: FileCoverage,
        target: Path,
        loc: int,
    ) -> None:
        root = ET.Element("phpunit", xmlns=NAMESPACE)
        elem = ET.SubElement(root, "file", name=Path(fc.path).name, path=fc.path)
        _totals(elem, [fc], loc)

        for func in sorted(fc.functions.values(), key=lambda f: f.start_line):
            ET.SubElement(
                elem,
                "function",
                name=func.name,
                start=str(func.start_line),
                end=str(func.end_line),
                executable=str(len(fc.function_lines(func))),
                coverage=f"{fc.function_rate(func) * 100:.0f}",
                crap=str(func.complexity),
            )

        coverage = ET.SubElement(elem, "coverage")
        for line in sorted(fc.lines):
            if fc.lines[line] == 0:
                continue
            line_elem = ET.SubElement(coverage, "line", nr=str(line))
            for label in snapshot.covering_runs(fc.path, line):
                ET.SubElement(line_elem, "covered", by=label)

        write_xml(root, target)
