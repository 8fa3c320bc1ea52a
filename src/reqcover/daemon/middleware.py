"""ASGI middleware that turns armed requests into coverage sessions.

Requests without the coverage signal pass straight through. Armed requests
either hit the report route (build or clear, then terminate) or run the
downstream app under a fresh recording that is merged once the response
has been sent.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.responses import FileResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from reqcover.config.models import CoverageConfig
from reqcover.config.project import ProjectConfig, load_project_config
from reqcover.coordinator import AccumulationCoordinator, RequestCoverageSession
from reqcover.core.errors import ReqCoverError
from reqcover.core.logging import clear_request_id, set_request_id
from reqcover.coverage.engine import CoveragePyRecorder, RecorderFactory
from reqcover.coverage.filters import SourceFilter, build_filter
from reqcover.coverage.store import Workspace, clear_directory, ensure_directory, read_shared
from reqcover.daemon.errors import ErrorSurface
from reqcover.report.builder import REPORT_FORMATS, ReportBuilder
from reqcover.report.writers import ReportWriter
from reqcover.signals import RequestContext

log = structlog.get_logger(__name__)

CLEAR_ROUTE = "clear"


@dataclass(frozen=True, slots=True)
class _Runtime:
    """Project and workspace an armed request resolves to."""

    project: ProjectConfig
    workspace: Workspace


class CoverageMiddleware:
    """Pure ASGI middleware: arm, dispatch, and merge at teardown."""

    def __init__(
        self,
        app: ASGIApp,
        config: CoverageConfig | None = None,
        *,
        recorder_factory: RecorderFactory = CoveragePyRecorder,
        writers: Mapping[str, ReportWriter] | None = None,
    ) -> None:
        self.app = app
        self.config = config or CoverageConfig()
        self.recorder_factory = recorder_factory
        self.writers = writers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = RequestContext.from_scope(scope)
        if not context.armed:
            await self.app(scope, receive, send)
            return

        set_request_id()
        try:
            await self._handle(context, scope, receive, send)
        finally:
            clear_request_id()

    async def _handle(
        self, context: RequestContext, scope: Scope, receive: Receive, send: Send
    ) -> None:
        surface = ErrorSurface(self._configured_error_log())
        try:
            runtime = await run_in_threadpool(self._resolve, context, surface)
        except ReqCoverError as e:
            await self._fail(e, surface, context, scope, receive, send)
            return

        if context.is_report_request(self.config.report_route):
            await self._report(context, runtime, surface, scope, receive, send)
            return

        # the suite narrows the recording filter only
        try:
            source_filter = await run_in_threadpool(build_filter, runtime.project, context.suite)
        except ReqCoverError as e:
            await self._fail(e, surface, context, scope, receive, send)
            return
        await self._collect(context, runtime, source_filter, surface, scope, receive, send)

    def _configured_error_log(self) -> Path | None:
        if self.config.error_log_file:
            return Path(self.config.error_log_file)
        return None

    def _resolve(self, context: RequestContext, surface: ErrorSurface) -> _Runtime:
        config_dir = Path(context.config_path or self.config.config_dir)
        project = load_project_config(config_dir, context.config_name)
        work_dir = Path(self.config.work_dir) if self.config.work_dir else project.work_dir
        workspace = Workspace(ensure_directory(work_dir))
        # later failures (suite lookup included) land in the work dir log
        surface.error_log_file = self._configured_error_log() or workspace.error_log
        return _Runtime(project=project, workspace=workspace)

    async def _fail(
        self,
        error: ReqCoverError,
        surface: ErrorSurface,
        context: RequestContext,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Surface a fatal error.

        Normally the request is terminated with an empty 500. In debug mode
        the downstream app still runs and the diagnostics ride on its response.
        """
        message = surface.record(error)
        if context.debug:
            await self.app(scope, receive, surface.wrap_send(send, message))
        else:
            await surface.response(message)(scope, receive, send)

    async def _report(
        self,
        context: RequestContext,
        runtime: _Runtime,
        surface: ErrorSurface,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        route = context.report_route
        if route == CLEAR_ROUTE:
            await run_in_threadpool(clear_directory, runtime.workspace.work_dir)
            await Response(status_code=200)(scope, receive, send)
            return

        if route not in REPORT_FORMATS:
            log.debug("report_route_unhandled", route=route, path=context.path)
            await self.app(scope, receive, send)
            return

        builder = ReportBuilder(
            runtime.workspace,
            source_root=runtime.project.project_dir,
            writers=self.writers,
        )
        try:
            artifact = await run_in_threadpool(builder.build, route)
            response = await run_in_threadpool(self._artifact_response, route, artifact)
        except ReqCoverError as e:
            message = surface.record(e)
            # report requests always terminate, debug or not
            await surface.response(message)(scope, receive, send)
            return
        await response(scope, receive, send)

    @staticmethod
    def _artifact_response(route: str, artifact: Path) -> Response:
        if route == "serialized":
            # the snapshot may be rewritten concurrently; copy it under the read lock
            return Response(
                read_shared(artifact),
                media_type="application/octet-stream",
                headers={"Content-Disposition": f'attachment; filename="{artifact.name}"'},
            )
        media_type = "application/x-tar" if artifact.suffix == ".tar" else "application/xml"
        return FileResponse(artifact, media_type=media_type, filename=artifact.name)

    async def _collect(
        self,
        context: RequestContext,
        runtime: _Runtime,
        source_filter: SourceFilter,
        surface: ErrorSurface,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        coordinator = AccumulationCoordinator(
            runtime.workspace.snapshot_path, self.recorder_factory
        )
        session = coordinator.arm(context, source_filter)
        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            error = await self._teardown(coordinator, session, context, surface)

        if error is not None and not response_started:
            await surface.response(error)(scope, receive, send)

    async def _teardown(
        self,
        coordinator: AccumulationCoordinator,
        session: RequestCoverageSession,
        context: RequestContext,
        surface: ErrorSurface,
    ) -> str | None:
        """Stop recording and merge; returns the surfaced message on failure."""
        if context.debug:
            coordinator.discard(session)
            return None
        # tracing is per thread: stop here, merge off the event loop
        session.finalize()
        try:
            await run_in_threadpool(coordinator.merge, session)
        except ReqCoverError as e:
            return surface.record(e)
        return None
