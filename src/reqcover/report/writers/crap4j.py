"""Crap4J XML writer (defect-density by method).

A method's CRAP score combines cyclomatic complexity with how much of it is
covered; methods scoring at or above the threshold count as "crappy".
"""

import xml.etree.ElementTree as ET
from pathlib import Path

from reqcover.coverage.models import CoverageSnapshot

from .base import crap, module_name, package_name, timestamp, write_xml

CRAP_THRESHOLD = 30


def _crap_load(score: float, complexity: int, rate: float) -> float:
    # Extra tests needed to bring the method under the threshold
    if score < CRAP_THRESHOLD:
        return 0.0
    return round(complexity * (1.0 - rate) + complexity / CRAP_THRESHOLD, 2)


class Crap4jWriter:
    """Writer for Crap4J XML format."""

    def __init__(self, threshold: int = CRAP_THRESHOLD) -> None:
        self.threshold = threshold

    @property
    def format_id(self) -> str:
        return "crap4j"

    def write(self, snapshot: CoverageSnapshot, target: Path, *, source_root: Path) -> Path:
        root = ET.Element("crap_result")
        ET.SubElement(root, "project").text = source_root.name
        ET.SubElement(root, "timestamp").text = str(timestamp())

        stats = ET.SubElement(root, "stats")
        methods = ET.SubElement(root, "methods")

        method_count = 0
        crap_methods = 0
        crap_load = 0.0
        total_crap = 0.0

        for path in sorted(snapshot.files):
            fc = snapshot.files[path]
            for func in sorted(fc.functions.values(), key=lambda f: f.start_line):
                rate = fc.function_rate(func)
                score = crap(func.complexity, rate)
                load = _crap_load(score, func.complexity, rate)

                method_count += 1
                total_crap += score
                crap_load += load
                if score >= self.threshold:
                    crap_methods += 1

                method = ET.SubElement(methods, "method")
                ET.SubElement(method, "package").text = package_name(path)
                ET.SubElement(method, "className").text = module_name(path)
                ET.SubElement(method, "methodName").text = func.name
                ET.SubElement(method, "methodSignature").text = func.name
                ET.SubElement(method, "fullMethod").text = func.name
                ET.SubElement(method, "crap").text = f"{score:g}"
                ET.SubElement(method, "complexity").text = str(func.complexity)
                ET.SubElement(method, "coverage").text = f"{rate * 100:.2f}"
                ET.SubElement(method, "crapLoad").text = f"{load:g}"

        ET.SubElement(stats, "name").text = "Method Crap Stats"
        ET.SubElement(stats, "methodCount").text = str(method_count)
        ET.SubElement(stats, "crapMethodCount").text = str(crap_methods)
        ET.SubElement(stats, "crapLoad").text = f"{round(crap_load, 2):g}"
        ET.SubElement(stats, "totalCrap").text = f"{round(total_crap, 2):g}"
        ET.SubElement(stats, "crapMethodPercent").text = (
            f"{crap_methods / method_count * 100:.2f}" if method_count else "0"
        )
        return write_xml(root, target)
