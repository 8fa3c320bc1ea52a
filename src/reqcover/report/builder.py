"""Render the persisted snapshot into report artifacts.

Read-only with respect to the snapshot: it is loaded once, under a shared
lock, and never written back.

Artifacts live next to the snapshot, named from the ``codecoverage`` prefix:
    serialized  -> codecoverage.serialized (the snapshot itself)
    clover      -> codecoverage.clover.xml
    crap4j      -> codecoverage.crap4j.xml
    cobertura   -> codecoverage.cobertura.xml
    html        -> codecoveragehtml/ packed into codecoverage.tar
    phpunit     -> codecoveragephpunit/ packed into codecoverage.tar
"""

from __future__ import annotations

import gzip
import shutil
import tarfile
from collections.abc import Mapping
from pathlib import Path

import structlog

from reqcover.core.errors import ReportGenerationError, ReqCoverError
from reqcover.coverage.models import CoverageSnapshot
from reqcover.coverage.store import Workspace, ensure_directory, factory
from reqcover.report.writers import WRITER_BY_FORMAT, ReportWriter

log = structlog.get_logger(__name__)

REPORT_FORMATS = ("html", "clover", "crap4j", "serialized", "phpunit", "cobertura")
ARCHIVE_FORMATS = frozenset({"html", "phpunit"})
FILE_SUFFIXES = {
    "clover": ".clover.xml",
    "crap4j": ".crap4j.xml",
    "cobertura": ".cobertura.xml",
}


def gzip_supported() -> bool:
    return "gztar" in dict(shutil.get_archive_formats())


def archive_directory(source_dir: Path, archive: Path) -> Path:
    """Pack ``source_dir`` into ``archive`` and delete the loose files.

    When gzip is available the archive is compressed in place, keeping the
    ``.tar`` name.
    """
    compressed = archive.with_name(archive.name + ".gz")
    archive.unlink(missing_ok=True)
    compressed.unlink(missing_ok=True)

    with tarfile.open(archive, "w") as tar:
        for entry in sorted(source_dir.rglob("*")):
            if entry.is_file():
                tar.add(entry, arcname=entry.relative_to(source_dir).as_posix())
    shutil.rmtree(source_dir)

    if gzip_supported():
        with archive.open("rb") as src, gzip.open(compressed, "wb") as dst:
            shutil.copyfileobj(src, dst)
        archive.unlink()
        compressed.rename(archive)
    return archive


class ReportBuilder:
    """Builds one report artifact per call from the workspace snapshot."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        source_root: Path,
        writers: Mapping[str, ReportWriter] | None = None,
    ) -> None:
        self.workspace = workspace
        self.source_root = source_root
        self.writers = WRITER_BY_FORMAT if writers is None else writers

    def build(self, report_format: str) -> Path:
        """Build the artifact for ``report_format`` and return its path.

        Raises:
            ReportGenerationError: Unknown/unsupported format, or the writer failed.
        """
        if report_format not in REPORT_FORMATS:
            raise ReportGenerationError.unsupported(
                report_format, f"one of: {', '.join(REPORT_FORMATS)}"
            )
        if report_format == "serialized":
            return self._serialized()

        writer = self.writers.get(report_format)
        if writer is None:
            raise ReportGenerationError.unsupported(
                report_format, f"a reporting backend that provides the {report_format} writer"
            )

        snapshot, _ = factory(self.workspace.snapshot_path)
        prefix = self.workspace.report_prefix
        if report_format in ARCHIVE_FORMATS:
            out_dir = prefix.with_name(prefix.name + report_format)
            if out_dir.exists():
                shutil.rmtree(out_dir)
            ensure_directory(out_dir)
            self._run(writer, snapshot, out_dir)
            artifact = archive_directory(out_dir, prefix.with_name(prefix.name + ".tar"))
        else:
            ensure_directory(prefix.parent)
            artifact = self._run(
                writer, snapshot, prefix.with_name(prefix.name + FILE_SUFFIXES[report_format])
            )

        log.info("report_built", format=report_format, artifact=str(artifact))
        return artifact

    def _serialized(self) -> Path:
        path = self.workspace.snapshot_path
        if not path.is_file():
            raise ReportGenerationError.writer_failed(
                "serialized", f"no coverage has been collected yet ({path} is missing)"
            )
        return path

    def _run(self, writer: ReportWriter, snapshot: CoverageSnapshot, target: Path) -> Path:
        try:
            return writer.write(snapshot, target, source_root=self.source_root)
        except ReqCoverError:
            raise
        except Exception as e:
            raise ReportGenerationError.writer_failed(writer.format_id, str(e)) from e
