"""Tests for report/builder.py module.

Covers:
- ReportBuilder.build() for file, archive and serialized formats
- Missing writers fail before any file is written
- archive_directory() packing and compression
"""

from __future__ import annotations

import gzip
import tarfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from reqcover.core.errors import ErrorCode, ReportGenerationError
from reqcover.coverage.models import CoverageSnapshot, FileCoverage
from reqcover.coverage.store import Workspace
from reqcover.report.builder import REPORT_FORMATS, ReportBuilder, archive_directory
from reqcover.report.writers import WRITER_BY_FORMAT


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    work_dir = tmp_path / "c3tmp"
    work_dir.mkdir()
    snapshot = CoverageSnapshot(
        files={"app/views.py": FileCoverage(path="app/views.py", lines={1: 1, 2: 0})},
        runs={"run1": {"app/views.py": {1}}},
    )
    (work_dir / "codecoverage.serialized").write_bytes(snapshot.to_bytes())
    return Workspace(work_dir)


def _files(directory: Path) -> set[str]:
    return {p.relative_to(directory).as_posix() for p in directory.rglob("*")}


class TestBuildFileFormats:
    """Single-file XML formats."""

    @pytest.mark.parametrize(
        ("report_format", "name"),
        [
            ("clover", "codecoverage.clover.xml"),
            ("crap4j", "codecoverage.crap4j.xml"),
            ("cobertura", "codecoverage.cobertura.xml"),
        ],
    )
    def test_artifact_name(
        self, workspace: Workspace, project_dir: Path, report_format: str, name: str
    ) -> None:
        """Each format lands next to the snapshot under its suffix."""
        artifact = ReportBuilder(workspace, source_root=project_dir).build(report_format)

        assert artifact == workspace.work_dir / name
        assert artifact.read_bytes().startswith(b"<?xml")

    def test_serialized_is_the_snapshot_file(self, workspace: Workspace, project_dir: Path) -> None:
        """The serialized report is the persisted file itself."""
        artifact = ReportBuilder(workspace, source_root=project_dir).build("serialized")

        assert artifact == workspace.snapshot_path

    def test_serialized_without_coverage(self, tmp_path: Path, project_dir: Path) -> None:
        """Nothing collected yet is a report error."""
        with pytest.raises(ReportGenerationError):
            ReportBuilder(Workspace(tmp_path), source_root=project_dir).build("serialized")

    def test_empty_snapshot_still_renders(self, tmp_path: Path, project_dir: Path) -> None:
        """XML reports work before the first merge."""
        artifact = ReportBuilder(Workspace(tmp_path / "w"), source_root=project_dir).build("clover")

        assert artifact.is_file()

    def test_empty_snapshot_cobertura(self, tmp_path: Path, project_dir: Path) -> None:
        """coverage.py refuses to report nothing; the refusal is a report error."""
        with pytest.raises(ReportGenerationError) as exc_info:
            ReportBuilder(Workspace(tmp_path / "w"), source_root=project_dir).build("cobertura")

        assert exc_info.value.message.startswith("Failed to build cobertura report")


class TestBuildArchiveFormats:
    """Directory formats packed into codecoverage.tar."""

    @pytest.mark.parametrize(("report_format", "member"), [("html", "index.html"), ("phpunit", "index.xml")])
    def test_archive(
        self, workspace: Workspace, project_dir: Path, report_format: str, member: str
    ) -> None:
        """The directory is archived and the loose files are removed."""
        artifact = ReportBuilder(workspace, source_root=project_dir).build(report_format)

        assert artifact == workspace.work_dir / "codecoverage.tar"
        assert not (workspace.work_dir / f"codecoverage{report_format}").exists()
        with tarfile.open(artifact) as tar:
            assert member in tar.getnames()

    def test_rebuild_replaces_previous_archive(self, workspace: Workspace, project_dir: Path) -> None:
        """A second build overwrites the first archive."""
        builder = ReportBuilder(workspace, source_root=project_dir)
        builder.build("phpunit")
        artifact = builder.build("html")

        with tarfile.open(artifact) as tar:
            assert "index.html" in tar.getnames()
            assert "index.xml" not in tar.getnames()


class TestMissingWriter:
    """Formats whose writer is not available."""

    def test_cobertura_missing_fails_without_writes(
        self, workspace: Workspace, project_dir: Path
    ) -> None:
        """No cobertura writer: ReportGenerationError and no new files."""
        # Given
        writers = {k: v for k, v in WRITER_BY_FORMAT.items() if k != "cobertura"}
        before = _files(workspace.work_dir)

        # When
        with pytest.raises(ReportGenerationError) as exc_info:
            ReportBuilder(workspace, source_root=project_dir, writers=writers).build("cobertura")

        # Then
        assert exc_info.value.code is ErrorCode.REPORT_FORMAT_UNSUPPORTED
        assert _files(workspace.work_dir) == before

    def test_unknown_format(self, workspace: Workspace, project_dir: Path) -> None:
        """Formats outside the route surface are rejected."""
        with pytest.raises(ReportGenerationError):
            ReportBuilder(workspace, source_root=project_dir).build("pdf")

    def test_writer_exception_is_wrapped(self, workspace: Workspace, project_dir: Path) -> None:
        """Unexpected writer errors become ReportGenerationError."""
        broken = MagicMock(format_id="clover")
        broken.write.side_effect = ValueError("bad data")

        with pytest.raises(ReportGenerationError) as exc_info:
            ReportBuilder(workspace, source_root=project_dir, writers={"clover": broken}).build(
                "clover"
            )
        assert exc_info.value.code is ErrorCode.REPORT_WRITER_FAILED
        assert "bad data" in exc_info.value.message

    def test_format_list(self) -> None:
        """The route surface lists every report format."""
        assert set(REPORT_FORMATS) == {"html", "clover", "crap4j", "serialized", "phpunit", "cobertura"}


class TestArchiveDirectory:
    """Tests for archive_directory."""

    def test_gzip_compressed_in_place(self, tmp_path: Path) -> None:
        """With gzip available the .tar name holds gzip data."""
        source = tmp_path / "html"
        (source / "sub").mkdir(parents=True)
        (source / "sub" / "a.html").write_text("a")

        with patch("reqcover.report.builder.gzip_supported", return_value=True):
            archive = archive_directory(source, tmp_path / "codecoverage.tar")

        assert archive.name == "codecoverage.tar"
        assert not source.exists()
        assert not (tmp_path / "codecoverage.tar.gz").exists()
        with gzip.open(archive) as f:
            assert f.read(1)
        with tarfile.open(archive) as tar:
            assert tar.getnames() == ["sub/a.html"]

    def test_plain_tar_without_gzip(self, tmp_path: Path) -> None:
        """Without gzip the archive stays uncompressed."""
        source = tmp_path / "html"
        source.mkdir()
        (source / "index.html").write_text("x")

        with patch("reqcover.report.builder.gzip_supported", return_value=False):
            archive = archive_directory(source, tmp_path / "codecoverage.tar")

        assert archive.read_bytes()[:2] != b"\x1f\x8b"
        with tarfile.open(archive, "r:") as tar:
            assert tar.getnames() == ["index.html"]

    def test_stale_archives_removed(self, tmp_path: Path) -> None:
        """Leftover .tar.gz from an interrupted build is removed."""
        source = tmp_path / "html"
        source.mkdir()
        (source / "index.html").write_text("x")
        (tmp_path / "codecoverage.tar.gz").write_bytes(b"stale")

        with patch("reqcover.report.builder.gzip_supported", return_value=False):
            archive_directory(source, tmp_path / "codecoverage.tar")

        assert not (tmp_path / "codecoverage.tar.gz").exists()
