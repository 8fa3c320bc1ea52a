"""Starlette application factory."""

from __future__ import annotations

from collections.abc import Mapping

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import Mount
from starlette.types import ASGIApp

from reqcover.config.models import ReqCoverConfig
from reqcover.coverage.engine import CoveragePyRecorder, RecorderFactory
from reqcover.daemon.middleware import CoverageMiddleware
from reqcover.report.writers import ReportWriter


def create_app(
    target: ASGIApp,
    config: ReqCoverConfig | None = None,
    *,
    recorder_factory: RecorderFactory = CoveragePyRecorder,
    writers: Mapping[str, ReportWriter] | None = None,
) -> Starlette:
    """Wrap ``target`` so armed requests are measured and reports are served."""
    config = config or ReqCoverConfig()
    return Starlette(
        routes=[Mount("/", app=target)],
        middleware=[
            Middleware(
                CoverageMiddleware,
                config=config.coverage,
                recorder_factory=recorder_factory,
                writers=writers,
            )
        ],
    )
