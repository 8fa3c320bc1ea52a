"""HTTP transport: coverage middleware, error surface, app factory."""

from reqcover.daemon.app import create_app
from reqcover.daemon.errors import ERROR_COOKIE, ERROR_HEADER, ErrorSurface
from reqcover.daemon.lifecycle import build_server, run_server
from reqcover.daemon.middleware import CoverageMiddleware

__all__ = [
    "CoverageMiddleware",
    "ERROR_COOKIE",
    "ERROR_HEADER",
    "ErrorSurface",
    "build_server",
    "create_app",
    "run_server",
]
