"""Report generation from the merged snapshot."""

from reqcover.report.builder import (
    REPORT_FORMATS,
    ReportBuilder,
    archive_directory,
    gzip_supported,
)
from reqcover.report.writers import WRITER_BY_FORMAT, WRITER_REGISTRY, ReportWriter

__all__ = [
    "REPORT_FORMATS",
    "ReportBuilder",
    "ReportWriter",
    "WRITER_BY_FORMAT",
    "WRITER_REGISTRY",
    "archive_directory",
    "gzip_supported",
]
