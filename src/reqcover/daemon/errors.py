"""Fatal error surface for armed requests.

A fatal error is logged, written (best effort) to the error log, and sent
back to the test client as a response header plus a cookie, which the
client-side coverage extension reads to fail the test run loudly.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from starlette.responses import Response
from starlette.types import Message, Send

from reqcover.core.errors import ReqCoverError, WritePermissionError

log = structlog.get_logger(__name__)

ERROR_HEADER = "X-Codeception-CodeCoverage-Error"
ERROR_COOKIE = "CODECEPTION_CODECOVERAGE_ERROR"


def _header_value(message: str) -> str:
    flat = message.replace("\r", " ").replace("\n", " ")
    return flat.encode("latin-1", "replace").decode("latin-1")


class ErrorSurface:
    """Records fatal errors and renders their diagnostic response parts."""

    def __init__(self, error_log_file: Path | None = None) -> None:
        self.error_log_file = error_log_file

    def record(self, error: ReqCoverError) -> str:
        """Log ``error`` and write it to the error log.

        Returns the message to surface to the client; when the error log is
        unwritable that message says so and carries the original text.
        """
        log.error("coverage_error", error=error.error_name, message=error.message)
        try:
            self.write_log(error.message)
        except WritePermissionError as degraded:
            log.warning("error_log_unwritable", path=degraded.details.get("path"))
            return degraded.message
        return error.message

    def write_log(self, message: str) -> None:
        """Replace the error log content, creating the file when missing.

        The directory must already exist; the work dir is created before
        anything can be logged there.
        """
        path = self.error_log_file
        if path is None:
            raise WritePermissionError.for_log("<unset>", message)
        try:
            path.write_text(message, encoding="utf-8")
        except OSError as e:
            raise WritePermissionError.for_log(str(path), message) from e

    def response(self, message: str) -> Response:
        """Terminating response: empty 500 with the diagnostic header and cookie."""
        response = Response(status_code=500, headers={ERROR_HEADER: _header_value(message)})
        response.set_cookie(ERROR_COOKIE, _header_value(message))
        return response

    def diagnostic_headers(self, message: str) -> list[tuple[bytes, bytes]]:
        return [
            (name, value)
            for name, value in self.response(message).raw_headers
            if name in (ERROR_HEADER.lower().encode("latin-1"), b"set-cookie")
        ]

    def wrap_send(self, send: Send, message: str) -> Send:
        """Send callable that appends the diagnostic headers to the response."""
        extra = self.diagnostic_headers(message)

        async def send_with_diagnostics(event: Message) -> None:
            if event["type"] == "http.response.start":
                event = dict(event)
                event["headers"] = [*event.get("headers", []), *extra]
            await send(event)

        return send_with_diagnostics
