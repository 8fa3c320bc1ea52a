"""Serve a wrapped application under uvicorn."""

from __future__ import annotations

import structlog
import uvicorn
from starlette.types import ASGIApp

from reqcover.config.models import ReqCoverConfig
from reqcover.daemon.app import create_app

logger = structlog.get_logger()


def build_server(target: ASGIApp, config: ReqCoverConfig) -> uvicorn.Server:
    app = create_app(target, config)
    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",  # Use structlog instead
        ws="none",
    )
    return uvicorn.Server(uvicorn_config)


async def run_server(target: ASGIApp, config: ReqCoverConfig) -> None:
    """Run until uvicorn receives a shutdown signal."""
    server = build_server(target, config)
    base_url = f"http://{config.server.host}:{config.server.port}"
    logger.info("server starting", url=base_url, config_dir=config.coverage.config_dir)
    logger.info("endpoint", name="report", url=f"{base_url}/{config.coverage.report_route}/<format>")
    try:
        await server.serve()
    finally:
        logger.info("server stopped")
