"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides a project tree plus a recorder that needs no tracing.
"""

import sys
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of reqcover modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("reqcover"):
        del sys.modules[module_name]

from reqcover.coverage.filters import SourceFilter  # noqa: E402
from reqcover.coverage.models import CoverageSnapshot, FileCoverage  # noqa: E402

CODECEPTION_YML = """\
paths:
  tests: tests
  output: tests/_output
coverage:
  include:
    - app/*
  exclude:
    - app/migrations/*
suites:
  api:
    coverage:
      include:
        - app/api/*
"""

VIEWS_PY = """\
def index(request):
    if request:
        return "ok"
    return "empty"


def unused():
    return 1
"""


class FakeRecorder:
    """Recorder that reports a preset measurement instead of tracing."""

    def __init__(self, source_filter: SourceFilter, lines: Mapping[str, Iterable[int]]) -> None:
        self.source_filter = source_filter
        self.lines = {path: set(executed) for path, executed in lines.items()}
        self.label: str | None = None
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, label: str) -> None:
        self.label = label
        self.start_calls += 1

    def stop(self) -> CoverageSnapshot:
        self.stop_calls += 1
        snapshot = CoverageSnapshot(source_filter=self.source_filter)
        for path, executed in self.lines.items():
            snapshot.files[path] = FileCoverage(path=path, lines=dict.fromkeys(executed, 1))
            snapshot.runs.setdefault(self.label or "", {})[path] = set(executed)
        return snapshot


RecorderFactoryMaker = Callable[..., Callable[[SourceFilter], FakeRecorder]]


@pytest.fixture
def make_recorder_factory() -> RecorderFactoryMaker:
    """Build a recorder factory whose recorders report ``lines``.

    Recorders it creates are appended to ``factory.created``.
    """

    def make(lines: Mapping[str, Iterable[int]] | None = None) -> Callable[[SourceFilter], FakeRecorder]:
        created: list[FakeRecorder] = []

        def factory(source_filter: SourceFilter) -> FakeRecorder:
            recorder = FakeRecorder(source_filter, lines or {})
            created.append(recorder)
            return recorder

        factory.created = created  # type: ignore[attr-defined]
        return factory

    return make


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Project with codeception.yml, an `api` suite and one source file."""
    root = tmp_path / "project"
    (root / "app" / "api").mkdir(parents=True)
    (root / "tests").mkdir()
    (root / "codeception.yml").write_text(CODECEPTION_YML)
    (root / "app" / "views.py").write_text(VIEWS_PY)
    (root / "app" / "api" / "handlers.py").write_text("def handle():\n    return 1\n")
    return root


@pytest.fixture
def work_dir(project_dir: Path) -> Path:
    """Default c3tmp working directory for ``project_dir`` (not created)."""
    return project_dir.resolve() / "tests" / "_output" / "c3tmp"
