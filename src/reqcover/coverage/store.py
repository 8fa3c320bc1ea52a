"""Persisted snapshot store: the session factory and its file lock.

The snapshot file is only ever rewritten while its writer holds an exclusive
``flock``; plain readers hold a shared ``flock`` while reading. A reader can
therefore never observe a half-written file, and concurrent mergers queue on
the lock instead of overwriting each other's work:

    Request 1 [ <lock> read merge write <unlock>                          ]
    Request 2 [        <blocked ...................> read merge write <unlock> ]

``flock`` locks belong to the open file description, so the same protocol
serializes threads of one process as well as separate worker processes.
"""

from __future__ import annotations

import fcntl
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import structlog

from reqcover.core.errors import (
    DirectoryCreationError,
    LockAcquisitionError,
    SnapshotDecodeError,
)
from reqcover.coverage.filters import SourceFilter
from reqcover.coverage.models import CoverageSnapshot, SnapshotFormatError

log = structlog.get_logger(__name__)

SNAPSHOT_BASENAME = "codecoverage"
ERROR_LOG_NAME = "error.txt"


@dataclass(frozen=True, slots=True)
class Workspace:
    """Layout of the working directory."""

    work_dir: Path

    @property
    def report_prefix(self) -> Path:
        return self.work_dir / SNAPSHOT_BASENAME

    @property
    def snapshot_path(self) -> Path:
        return self.work_dir / f"{SNAPSHOT_BASENAME}.serialized"

    @property
    def error_log(self) -> Path:
        return self.work_dir / ERROR_LOG_NAME


class LockHandle:
    """An exclusive advisory lock on the snapshot file, held open for one
    read-modify-write cycle.

    Use as a context manager; the lock is released on every exit path and
    ``release`` is safe to call more than once.
    """

    def __init__(self, path: Path, file: BinaryIO) -> None:
        self.path = path
        self._file: BinaryIO | None = file

    @classmethod
    def acquire(cls, path: Path) -> LockHandle:
        """Open ``path`` read/write (creating it) and block until locked."""
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as e:
            raise LockAcquisitionError.for_path(str(path), e.strerror or str(e)) from e
        file = os.fdopen(fd, "r+b")
        try:
            fcntl.flock(file.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            file.close()
            raise LockAcquisitionError.for_path(str(path), e.strerror or str(e)) from e
        return cls(path, file)

    @property
    def released(self) -> bool:
        return self._file is None

    def _require_file(self) -> BinaryIO:
        if self._file is None:
            raise RuntimeError(f"lock on {self.path} already released")
        return self._file

    def read_bytes(self) -> bytes:
        file = self._require_file()
        file.seek(0)
        return file.read()

    def write_bytes(self, data: bytes) -> None:
        file = self._require_file()
        file.seek(0)
        file.write(data)
        file.truncate()
        file.flush()
        os.fsync(file.fileno())

    def write_snapshot(self, snapshot: CoverageSnapshot) -> None:
        self.write_bytes(snapshot.to_bytes())

    def release(self) -> None:
        file, self._file = self._file, None
        if file is None:
            return
        try:
            fcntl.flock(file.fileno(), fcntl.LOCK_UN)
        finally:
            file.close()

    def __enter__(self) -> LockHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def read_shared(path: Path) -> bytes:
    """Read the whole file while holding a shared lock."""
    with path.open("rb") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_SH)
        try:
            return f.read()
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def _decode(data: bytes, path: Path) -> CoverageSnapshot:
    try:
        return CoverageSnapshot.from_bytes(data)
    except SnapshotFormatError as e:
        raise SnapshotDecodeError.for_path(str(path), str(e)) from e


def factory(
    path: Path | None,
    *,
    exclusive_lock: bool = False,
    source_filter: SourceFilter | None = None,
) -> tuple[CoverageSnapshot, LockHandle | None]:
    """Produce a ready-to-use snapshot, optionally with the file locked.

    Args:
        path: Previously persisted snapshot, if any.
        exclusive_lock: Keep the file locked for the caller's
            read-modify-write. The caller must release the returned handle.
        source_filter: Rules attached to freshly built snapshots.

    Returns:
        ``(snapshot, handle)``; ``handle`` is None unless a lock was taken.

    Raises:
        LockAcquisitionError: If the file cannot be opened or locked.
        SnapshotDecodeError: If the file holds a malformed snapshot.
    """
    if path is not None and exclusive_lock:
        handle = LockHandle.acquire(path)
        try:
            data = handle.read_bytes()
            if data:
                snapshot = _decode(data, path)
            else:
                # created just now, or emptied by a crashed first writer
                snapshot = CoverageSnapshot(source_filter=source_filter)
        except BaseException:
            handle.release()
            raise
        return snapshot, handle

    if path is not None and path.is_file() and os.access(path, os.R_OK):
        data = read_shared(path)
        if data:
            return _decode(data, path), None

    return CoverageSnapshot(source_filter=source_filter), None


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) if missing."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationError.for_path(str(path), e.strerror or str(e)) from e
    return path


def clear_directory(path: Path) -> int:
    """Delete everything inside ``path``, keeping the directory itself.

    Returns the number of top-level entries removed.
    """
    if not path.is_dir():
        return 0
    removed = 0
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink(missing_ok=True)
        removed += 1
    log.info("coverage_cleared", work_dir=str(path), removed=removed)
    return removed
