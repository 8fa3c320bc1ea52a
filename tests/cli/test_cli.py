"""Tests for the reqcover CLI.

Covers:
- reqcover report FORMAT
- reqcover clear [--yes]
- reqcover serve APP
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from reqcover.cli.main import cli
from reqcover.coverage.models import CoverageSnapshot, FileCoverage


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # keep a developer's reqcover.yaml / env out of the tests
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("REQCOVER__COVERAGE__WORK_DIR", raising=False)


@pytest.fixture
def collected(work_dir: Path) -> Path:
    """Work dir holding a persisted snapshot."""
    work_dir.mkdir(parents=True)
    snapshot = CoverageSnapshot(
        files={"app/views.py": FileCoverage(path="app/views.py", lines={1: 1, 2: 0})},
        runs={"run1": {"app/views.py": {1}}},
    )
    (work_dir / "codecoverage.serialized").write_bytes(snapshot.to_bytes())
    return work_dir


class TestReportCommand:
    """Tests for `reqcover report`."""

    def test_builds_report(self, runner: CliRunner, project_dir: Path, collected: Path) -> None:
        """The artifact path is printed on success."""
        result = runner.invoke(cli, ["report", "clover", "--config-dir", str(project_dir)])

        assert result.exit_code == 0, result.output
        assert str(collected / "codecoverage.clover.xml") in result.output
        assert (collected / "codecoverage.clover.xml").is_file()

    def test_rejects_unknown_format(self, runner: CliRunner, project_dir: Path) -> None:
        """Only route formats are accepted."""
        result = runner.invoke(cli, ["report", "pdf", "--config-dir", str(project_dir)])

        assert result.exit_code != 0

    def test_missing_project_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """A missing codeception.yml is a CLI error."""
        result = runner.invoke(cli, ["report", "clover", "--config-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestClearCommand:
    """Tests for `reqcover clear`."""

    def test_clear_with_yes(self, runner: CliRunner, project_dir: Path, collected: Path) -> None:
        """--yes skips the prompt and empties the work dir."""
        result = runner.invoke(cli, ["clear", "--yes", "--config-dir", str(project_dir)])

        assert result.exit_code == 0, result.output
        assert list(collected.iterdir()) == []

    def test_cancelled(self, runner: CliRunner, project_dir: Path, collected: Path) -> None:
        """Declining the prompt keeps everything."""
        prompt = MagicMock()
        prompt.ask.return_value = False
        with patch("reqcover.cli.clear.questionary.confirm", return_value=prompt):
            result = runner.invoke(cli, ["clear", "--config-dir", str(project_dir)])

        assert result.exit_code == 0
        assert (collected / "codecoverage.serialized").exists()

    def test_nothing_to_clear(self, runner: CliRunner, project_dir: Path) -> None:
        """An absent work dir is reported, not an error."""
        result = runner.invoke(cli, ["clear", "--yes", "--config-dir", str(project_dir)])

        assert result.exit_code == 0
        assert "Nothing to clear" in result.output


class TestServeCommand:
    """Tests for `reqcover serve`."""

    def test_imports_app_and_runs_server(
        self, runner: CliRunner, project_dir: Path, tmp_path: Path
    ) -> None:
        """The target is imported and handed to run_server with overrides."""
        app_dir = tmp_path / "srv"
        app_dir.mkdir()
        (app_dir / "reqcover_cli_target.py").write_text(
            "async def app(scope, receive, send):\n    pass\n"
        )

        with patch("reqcover.cli.serve.run_server", new=AsyncMock()) as run_server:
            result = runner.invoke(
                cli,
                [
                    "serve",
                    "reqcover_cli_target:app",
                    "--app-dir",
                    str(app_dir),
                    "--port",
                    "9123",
                    "--config-dir",
                    str(project_dir),
                ],
            )

        assert result.exit_code == 0, result.output
        target, config = run_server.await_args.args
        assert callable(target)
        assert config.server.port == 9123
        assert config.coverage.config_dir == str(project_dir)

    def test_bad_import_string(self, runner: CliRunner) -> None:
        """An unimportable APP is a CLI error."""
        result = runner.invoke(cli, ["serve", "no_such_module_xyz:app"])

        assert result.exit_code == 1
