"""Coverage snapshots: model, merge, recording and persistence.

Usage:
    from reqcover.coverage import factory, merge

    # Read the accumulated snapshot (shared lock while reading)
    snapshot, _ = factory(workspace.snapshot_path)

    # Read-modify-write under the exclusive lock
    existing, handle = factory(workspace.snapshot_path, exclusive_lock=True)
    with handle:
        existing.merge(request_snapshot)
        handle.write_snapshot(existing)
"""

from reqcover.coverage.engine import (
    CoveragePyRecorder,
    Recorder,
    RecorderFactory,
    function_regions,
)
from reqcover.coverage.filters import SourceFilter, build_filter
from reqcover.coverage.merge import (
    merge,
    merge_file_coverage,
    merge_into,
    merge_snapshots,
)
from reqcover.coverage.models import (
    CoverageSnapshot,
    CoverageSummary,
    FileCoverage,
    FunctionCoverage,
    SnapshotFormatError,
)
from reqcover.coverage.store import (
    LockHandle,
    Workspace,
    clear_directory,
    ensure_directory,
    factory,
    read_shared,
)

__all__ = [
    # Models
    "CoverageSnapshot",
    "CoverageSummary",
    "FileCoverage",
    "FunctionCoverage",
    "SnapshotFormatError",
    # Merge
    "merge",
    "merge_file_coverage",
    "merge_into",
    "merge_snapshots",
    # Recording
    "CoveragePyRecorder",
    "Recorder",
    "RecorderFactory",
    "SourceFilter",
    "build_filter",
    "function_regions",
    # Store
    "LockHandle",
    "Workspace",
    "clear_directory",
    "ensure_directory",
    "factory",
    "read_shared",
]
