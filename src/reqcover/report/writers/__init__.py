"""Report writer registry.

This module provides:
- WRITER_REGISTRY: All bundled writers
- WRITER_BY_FORMAT: Format ID to writer mapping, the default for ReportBuilder
"""

from collections.abc import Sequence

from .base import ReportWriter
from .clover import CloverWriter
from .cobertura import CoberturaWriter
from .crap4j import Crap4jWriter
from .html import HtmlWriter
from .phpunit import PhpunitXmlWriter

WRITER_REGISTRY: Sequence[ReportWriter] = (
    HtmlWriter(),
    CloverWriter(),
    Crap4jWriter(),
    PhpunitXmlWriter(),
    CoberturaWriter(),
)

WRITER_BY_FORMAT: dict[str, ReportWriter] = {w.format_id: w for w in WRITER_REGISTRY}

__all__ = [
    "WRITER_REGISTRY",
    "WRITER_BY_FORMAT",
    "ReportWriter",
    "CloverWriter",
    "CoberturaWriter",
    "Crap4jWriter",
    "HtmlWriter",
    "PhpunitXmlWriter",
]
