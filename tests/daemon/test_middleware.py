"""Tests for daemon/middleware.py module.

Covers:
- Pass-through for unarmed and non-HTTP traffic
- Per-request recording and merge at teardown
- Debug mode isolation and diagnostics
- Report routes: formats, clear, unknown sub-routes
- Fatal error surface
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import quote

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from reqcover.config.models import CoverageConfig, ReqCoverConfig
from reqcover.coverage.store import factory
from reqcover.daemon.app import create_app
from reqcover.daemon.errors import ERROR_COOKIE, ERROR_HEADER
from reqcover.daemon.middleware import CoverageMiddleware
from reqcover.signals import SIGNAL_COOKIE

ARMED = {"X-Codeception-CodeCoverage": "LoginCest:testLogin"}


async def _homepage(_request: Request) -> PlainTextResponse:
    return PlainTextResponse("hello")


async def _boom(_request: Request) -> PlainTextResponse:
    raise RuntimeError("handler failed")


def _target() -> Starlette:
    return Starlette(routes=[Route("/", _homepage), Route("/boom", _boom)])


@pytest.fixture
def recorder_factory(make_recorder_factory):
    return make_recorder_factory({"app/views.py": [1, 2]})


@pytest.fixture
def client(project_dir: Path, recorder_factory) -> TestClient:
    config = ReqCoverConfig(coverage=CoverageConfig(config_dir=str(project_dir)))
    app = create_app(_target(), config, recorder_factory=recorder_factory)
    return TestClient(app, raise_server_exceptions=False)


class TestPassThrough:
    """Traffic that is not armed is untouched."""

    def test_unarmed_request(self, client: TestClient, recorder_factory, work_dir: Path) -> None:
        """No signal: no recorder, no working directory."""
        response = client.get("/")

        assert response.text == "hello"
        assert recorder_factory.created == []
        assert not work_dir.exists()

    @pytest.mark.asyncio
    async def test_non_http_scope(self) -> None:
        """Lifespan and websocket scopes go straight to the app."""
        calls: list[dict] = []

        async def app(scope: dict, _receive: MagicMock, _send: MagicMock) -> None:
            calls.append(scope)

        middleware = CoverageMiddleware(app)
        scope = {"type": "lifespan"}
        await middleware(scope, MagicMock(), MagicMock())

        assert calls == [scope]


class TestRecording:
    """Armed requests are recorded and merged."""

    def test_header_armed_request_is_merged(
        self, client: TestClient, recorder_factory, work_dir: Path
    ) -> None:
        """The session's lines are persisted under the run label."""
        response = client.get("/", headers=ARMED)

        assert response.text == "hello"
        (recorder,) = recorder_factory.created
        assert recorder.label == "LoginCest:testLogin"
        assert recorder.stop_calls == 1
        persisted, _ = factory(work_dir / "codecoverage.serialized")
        assert persisted.runs == {"LoginCest:testLogin": {"app/views.py": {1, 2}}}

    def test_cookie_armed_request_is_merged(self, client: TestClient, work_dir: Path) -> None:
        """The cookie transport arms collection like the header."""
        cookie = quote(json.dumps({"CodeCoverage": "run1"}))

        client.get("/", headers={"cookie": f"{SIGNAL_COOKIE}={cookie}"})

        persisted, _ = factory(work_dir / "codecoverage.serialized")
        assert set(persisted.runs) == {"run1"}

    def test_merge_runs_when_handler_raises(self, client: TestClient, work_dir: Path) -> None:
        """Teardown merges even when the downstream app fails."""
        response = client.get("/boom", headers=ARMED)

        assert response.status_code == 500
        persisted, _ = factory(work_dir / "codecoverage.serialized")
        assert "LoginCest:testLogin" in persisted.runs

    def test_suite_signal_narrows_filter(self, client: TestClient, recorder_factory) -> None:
        """The recorder gets the suite's rules."""
        client.get("/", headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "api"})

        assert recorder_factory.created[0].source_filter.include == ("app/api/*",)

    def test_debug_mode_does_not_persist(
        self, client: TestClient, recorder_factory, work_dir: Path
    ) -> None:
        """Debug requests record but never write the snapshot."""
        response = client.get("/", headers={**ARMED, "X-Codeception-CodeCoverage-Debug": "1"})

        assert response.text == "hello"
        assert recorder_factory.created[0].stop_calls == 1
        assert not (work_dir / "codecoverage.serialized").exists()

    def test_merge_failure_after_response_is_logged(
        self, client: TestClient, work_dir: Path
    ) -> None:
        """A failed merge after the response started only reaches the error log."""
        work_dir.mkdir(parents=True)
        (work_dir / "codecoverage.serialized").write_bytes(b"{corrupt")

        response = client.get("/", headers=ARMED)

        assert response.status_code == 200
        assert ERROR_HEADER not in response.headers
        assert (work_dir / "error.txt").read_text()


class TestReportRoutes:
    """Report sub-routes."""

    def _collect(self, client: TestClient) -> None:
        client.get("/", headers=ARMED)

    def test_clover_report(self, client: TestClient) -> None:
        """Known formats stream the built artifact."""
        self._collect(client)

        response = client.get("/c3/report/clover", headers=ARMED)

        assert response.status_code == 200
        assert response.content.startswith(b"<?xml")
        assert "codecoverage.clover.xml" in response.headers["content-disposition"]

    def test_serialized_report(self, client: TestClient, work_dir: Path) -> None:
        """The serialized report is the persisted snapshot."""
        self._collect(client)

        response = client.get("/c3/report/serialized/", headers=ARMED)

        assert response.content == (work_dir / "codecoverage.serialized").read_bytes()

    def test_html_report_is_tar(self, client: TestClient) -> None:
        """Archive formats return codecoverage.tar."""
        self._collect(client)

        response = client.get("/c3/report/html", headers=ARMED)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-tar"

    def test_report_request_is_not_recorded(self, client: TestClient, recorder_factory) -> None:
        """Report requests never arm a recorder."""
        client.get("/c3/report/clover", headers=ARMED)

        assert recorder_factory.created == []

    def test_clear(self, client: TestClient, work_dir: Path) -> None:
        """clear empties the working directory and answers with no body."""
        self._collect(client)
        client.get("/c3/report/clover", headers=ARMED)

        response = client.get(
            "/c3/report/clear",
            headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "api"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert list(work_dir.iterdir()) == []

    def test_clear_ignores_unknown_suite(self, client: TestClient, work_dir: Path) -> None:
        """A suite that does not exist does not stop clear."""
        self._collect(client)
        assert (work_dir / "codecoverage.serialized").exists()

        response = client.get(
            "/c3/report/clear",
            headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "nosuch"},
        )

        assert response.status_code == 200
        assert response.content == b""
        assert ERROR_HEADER not in response.headers
        assert list(work_dir.iterdir()) == []

    def test_report_ignores_unknown_suite(self, client: TestClient) -> None:
        """Reports are built whatever suite the client names."""
        self._collect(client)

        response = client.get(
            "/c3/report/clover",
            headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "nosuch"},
        )

        assert response.status_code == 200
        assert response.content.startswith(b"<?xml")

    def test_unknown_sub_route_falls_through(self, client: TestClient, recorder_factory) -> None:
        """Unrecognized report sub-routes reach the app unrecorded."""
        response = client.get("/c3/report/pdf", headers=ARMED)

        assert response.status_code == 404
        assert recorder_factory.created == []

    def test_missing_writer_is_surfaced(
        self, project_dir: Path, recorder_factory, work_dir: Path
    ) -> None:
        """Report errors terminate with the diagnostic header."""
        config = ReqCoverConfig(coverage=CoverageConfig(config_dir=str(project_dir)))
        app = create_app(_target(), config, recorder_factory=recorder_factory, writers={})
        client = TestClient(app)

        response = client.get("/c3/report/cobertura", headers=ARMED)

        assert response.status_code == 500
        assert response.content == b""
        assert response.headers[ERROR_HEADER].startswith("Cobertura report requires")
        assert not (work_dir / "codecoverage.cobertura.xml").exists()


class TestFatalErrors:
    """Configuration failures before recording."""

    def test_missing_config_terminates(self, client: TestClient, tmp_path: Path) -> None:
        """No codeception.yml: empty 500 with header and cookie."""
        empty = tmp_path / "empty"
        empty.mkdir()

        response = client.get(
            "/", headers={**ARMED, "X-Codeception-CodeCoverage-Config-Path": str(empty)}
        )

        assert response.status_code == 500
        assert response.content == b""
        assert "not found" in response.headers[ERROR_HEADER]
        assert ERROR_COOKIE in response.headers["set-cookie"]

    def test_unknown_suite_terminates(
        self, client: TestClient, recorder_factory, work_dir: Path
    ) -> None:
        """Unknown suites abort before any recorder starts."""
        response = client.get("/", headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "nope"})

        assert response.status_code == 500
        assert "nope" in response.headers[ERROR_HEADER]
        assert recorder_factory.created == []
        assert (work_dir / "error.txt").read_text() == "Suite 'nope' could not be found"

    def test_debug_mode_continues_to_app(self, client: TestClient) -> None:
        """In debug mode the app still answers, carrying the diagnostics."""
        response = client.get(
            "/",
            headers={
                **ARMED,
                "X-Codeception-CodeCoverage-Suite": "nope",
                "X-Codeception-CodeCoverage-Debug": "1",
            },
        )

        assert response.status_code == 200
        assert response.text == "hello"
        assert "nope" in response.headers[ERROR_HEADER]

    def test_configured_error_log(self, project_dir: Path, tmp_path: Path, recorder_factory) -> None:
        """error_log_file overrides <work_dir>/error.txt."""
        log_file = tmp_path / "c3-error.log"
        config = ReqCoverConfig(
            coverage=CoverageConfig(config_dir=str(project_dir), error_log_file=str(log_file))
        )
        client = TestClient(create_app(_target(), config, recorder_factory=recorder_factory))

        client.get("/", headers={**ARMED, "X-Codeception-CodeCoverage-Suite": "nope"})

        assert log_file.read_text() == "Suite 'nope' could not be found"
