"""Snapshot merging with max-hit semantics.

When merging request measurements into the accumulated snapshot:

- line[i] = max(line[i] across all snapshots)
- function regions are unioned by name (widest span, highest complexity)
- runs[label][path] = union of the line sets recorded under that label

Every rule is commutative, associative and idempotent, so the persisted
result does not depend on the order in which concurrent requests merged.
"""

from collections.abc import Iterable

from reqcover.coverage.models import (
    CoverageSnapshot,
    FileCoverage,
    FunctionCoverage,
)


def merge_functions(a: FunctionCoverage, b: FunctionCoverage) -> FunctionCoverage:
    return FunctionCoverage(
        name=a.name,
        start_line=min(a.start_line, b.start_line),
        end_line=max(a.end_line, b.end_line),
        complexity=max(a.complexity, b.complexity),
    )


def merge_file_coverage(files: Iterable[FileCoverage]) -> FileCoverage:
    """Merge multiple FileCoverage objects for the same file.

    Args:
        files: FileCoverage objects to merge (must have same path).

    Returns:
        Merged FileCoverage with max hits across all inputs.
    """
    files_list = list(files)
    if not files_list:
        raise ValueError("Cannot merge empty file coverage list")

    result = FileCoverage(path=files_list[0].path)
    for fc in files_list:
        for line_num, hits in fc.lines.items():
            result.lines[line_num] = max(result.lines.get(line_num, 0), hits)
        for name, func in fc.functions.items():
            existing = result.functions.get(name)
            result.functions[name] = func if existing is None else merge_functions(existing, func)
    return result


def merge_into(target: CoverageSnapshot, other: CoverageSnapshot) -> None:
    """Absorb ``other`` into ``target`` in place."""
    for path, fc in other.files.items():
        existing = target.files.get(path)
        if existing is None:
            target.files[path] = merge_file_coverage([fc])
        else:
            target.files[path] = merge_file_coverage([existing, fc])

    for label, per_file in other.runs.items():
        target_run = target.runs.setdefault(label, {})
        for path, lines in per_file.items():
            target_run.setdefault(path, set()).update(lines)


def merge_snapshots(snapshots: Iterable[CoverageSnapshot]) -> CoverageSnapshot:
    """Merge snapshots into a new one; inputs are left untouched."""
    result = CoverageSnapshot()
    for snapshot in snapshots:
        merge_into(result, snapshot)
    return result


def merge(*snapshots: CoverageSnapshot) -> CoverageSnapshot:
    return merge_snapshots(snapshots)
