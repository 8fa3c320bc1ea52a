"""Hand a merged snapshot to coverage.py's own reporters."""

from pathlib import Path

import coverage

from reqcover.coverage.models import CoverageSnapshot


def load_coverage(snapshot: CoverageSnapshot, source_root: Path) -> coverage.Coverage:
    """In-memory coverage.py session holding ``snapshot``, ready for reporting.

    Run labels become measurement contexts. Executed lines that no run
    claims are recorded without a context. Paths are made absolute against
    ``source_root`` so reporters can read the sources.
    """
    root = source_root.resolve()
    cov = coverage.Coverage(data_file=None, config_file=False, source=[str(root)])
    data = cov.get_data()

    claimed: dict[str, set[int]] = {}
    for label, files in sorted(snapshot.runs.items()):
        data.set_context(label)
        data.add_lines({str(root / path): sorted(lines) for path, lines in files.items() if lines})
        for path, lines in files.items():
            claimed.setdefault(path, set()).update(lines)

    data.set_context(None)
    unclaimed = {
        str(root / path): sorted(
            line for line, hits in fc.lines.items() if hits > 0 and line not in claimed.get(path, ())
        )
        for path, fc in snapshot.files.items()
    }
    data.add_lines({path: lines for path, lines in unclaimed.items() if lines})
    return cov
