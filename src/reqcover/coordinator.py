"""Per-request accumulation: arm a fresh measurement, merge it at teardown.

Each armed request owns an independent :class:`RequestCoverageSession`
while its code runs. At teardown the session's data is folded into the
persisted snapshot inside one exclusive-lock critical section. Recording
happens in parallel; only the read-modify-write is serialized.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from reqcover.core.errors import InternalError
from reqcover.coverage.engine import CoveragePyRecorder, Recorder, RecorderFactory
from reqcover.coverage.filters import SourceFilter
from reqcover.coverage.models import CoverageSnapshot
from reqcover.coverage.store import ensure_directory, factory
from reqcover.signals import RequestContext

log = structlog.get_logger(__name__)


class SessionState(Enum):
    ARMED = "armed"
    MERGED = "merged"
    DISCARDED = "discarded"


@dataclass(slots=True)
class RequestCoverageSession:
    """A measurement scoped to exactly one request."""

    label: str
    recorder: Recorder
    state: SessionState = SessionState.ARMED
    _snapshot: CoverageSnapshot | None = field(default=None, repr=False)

    @property
    def stopped(self) -> bool:
        return self._snapshot is not None

    def finalize(self) -> CoverageSnapshot:
        """Stop recording (once) and return the request's measurement.

        Must run on the thread that armed the session, since tracing is
        installed per thread.
        """
        if self._snapshot is None:
            self._snapshot = self.recorder.stop()
        return self._snapshot


class AccumulationCoordinator:
    """Starts request sessions and merges them into the persisted snapshot."""

    def __init__(
        self,
        snapshot_path: Path,
        recorder_factory: RecorderFactory = CoveragePyRecorder,
    ) -> None:
        self.snapshot_path = snapshot_path
        self.recorder_factory = recorder_factory

    def arm(self, context: RequestContext, source_filter: SourceFilter) -> RequestCoverageSession:
        """Create a fresh session and start recording immediately."""
        fresh, _ = factory(None, source_filter=source_filter)
        recorder = self.recorder_factory(fresh.source_filter or source_filter)
        session = RequestCoverageSession(label=context.coverage_label, recorder=recorder)
        recorder.start(session.label)
        log.debug("coverage_armed", label=session.label, path=context.path)
        return session

    def discard(self, session: RequestCoverageSession) -> None:
        """Stop a session without persisting it."""
        session.finalize()
        session.state = SessionState.DISCARDED
        log.debug("coverage_discarded", label=session.label)

    def merge(self, session: RequestCoverageSession) -> CoverageSnapshot:
        """Fold the session into the persisted snapshot under the file lock.

        Raises:
            DirectoryCreationError: If the snapshot directory cannot be created.
            LockAcquisitionError: If the snapshot file cannot be locked.
            SnapshotDecodeError: If the persisted snapshot is malformed.
            InternalError: If the session was already merged or the write fails.
        """
        if session.state is not SessionState.ARMED:
            raise InternalError.unexpected(
                f"session '{session.label}' is already {session.state.value}"
            )
        measurement = session.finalize()
        ensure_directory(self.snapshot_path.parent)

        started = time.monotonic()
        existing, handle = factory(self.snapshot_path, exclusive_lock=True)
        if handle is None:
            raise InternalError.unexpected(f"no lock held on {self.snapshot_path}")
        with handle:
            existing.merge(measurement)
            try:
                handle.write_snapshot(existing)
            except OSError as e:
                raise InternalError.unexpected(
                    f"failed to write {self.snapshot_path}: {e}",
                    path=str(self.snapshot_path),
                ) from e

        session.state = SessionState.MERGED
        log.info(
            "coverage_merged",
            label=session.label,
            files=len(measurement.files),
            total_files=len(existing.files),
            lock_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return existing

    @contextmanager
    def recording(
        self,
        context: RequestContext,
        source_filter: SourceFilter,
    ) -> Iterator[RequestCoverageSession]:
        """Arm for the duration of the block; merge on every exit path.

        In debug mode nothing is persisted: the session is discarded.
        """
        session = self.arm(context, source_filter)
        try:
            yield session
        finally:
            if context.debug:
                self.discard(session)
            else:
                self.merge(session)
