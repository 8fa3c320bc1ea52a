"""Coverage control signals and the per-request context that carries them.

Signals arrive as request headers (``X-Codeception-CodeCoverage`` and
friends) or, for clients that cannot set headers, as a JSON object in the
``CODECEPTION_CODECOVERAGE`` cookie. Both transports are normalized into one
metadata mapping keyed the CGI way (``HTTP_X_CODECEPTION_CODECOVERAGE``).
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

import structlog
from starlette.requests import cookie_parser

log = structlog.get_logger(__name__)

SIGNAL_COOKIE = "CODECEPTION_CODECOVERAGE"
SIGNAL_PREFIX = "HTTP_X_CODECEPTION_"

COVERAGE_KEY = "HTTP_X_CODECEPTION_CODECOVERAGE"
CONFIG_KEY = "HTTP_X_CODECEPTION_CODECOVERAGE_CONFIG"
CONFIG_PATH_KEY = "HTTP_X_CODECEPTION_CODECOVERAGE_CONFIG_PATH"
SUITE_KEY = "HTTP_X_CODECEPTION_CODECOVERAGE_SUITE"
DEBUG_KEY = "HTTP_X_CODECEPTION_CODECOVERAGE_DEBUG"

REPORT_ROUTE = "c3/report"


def header_to_key(name: str) -> str:
    """``X-Codeception-CodeCoverage`` -> ``HTTP_X_CODECEPTION_CODECOVERAGE``."""
    return "HTTP_" + name.upper().replace("-", "_")


def metadata_from_headers(headers: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for raw_name, raw_value in headers:
        name = raw_name.decode("latin-1")
        metadata[header_to_key(name)] = raw_value.decode("latin-1")
    return metadata


def _decode_cookie(raw: str) -> dict[str, Any] | None:
    try:
        decoded = json.loads(raw)
    except ValueError:
        return None
    # Some WebDriver clients JSON-encode the object twice
    if not isinstance(decoded, dict) and isinstance(decoded, str):
        try:
            decoded = json.loads(decoded)
        except ValueError:
            return None
    return decoded if isinstance(decoded, dict) else None


def _is_empty(value: Any) -> bool:
    return value in (None, "", "0", 0, False) or value == [] or value == {}


def translate_cookie_signals(
    metadata: Mapping[str, str],
    cookies: Mapping[str, str],
) -> dict[str, str]:
    """Return metadata with cookie-borne signals installed as canonical keys.

    Never raises: a missing or undecodable cookie leaves metadata unchanged.
    """
    result = dict(metadata)
    raw = cookies.get(SIGNAL_COOKIE)
    if raw is None:
        return result

    signals = _decode_cookie(unquote(raw))
    if not signals:
        log.debug("signal_cookie_undecodable", cookie=SIGNAL_COOKIE)
        return result

    for key, value in signals.items():
        if _is_empty(value):
            continue
        result[SIGNAL_PREFIX + str(key).upper()] = str(value)
    return result


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Explicit view of one request's coverage signals.

    Built once at the edge and passed down to dispatch and the coordinator.
    """

    path: str
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any]) -> RequestContext:
        headers = scope.get("headers") or []
        metadata = metadata_from_headers(headers)
        cookies = cookie_parser(metadata.get("HTTP_COOKIE", ""))
        return cls(
            path=_request_uri(scope),
            metadata=translate_cookie_signals(metadata, cookies),
        )

    @property
    def armed(self) -> bool:
        return COVERAGE_KEY in self.metadata

    @property
    def coverage_label(self) -> str:
        return self.metadata.get(COVERAGE_KEY, "")

    @property
    def config_name(self) -> str | None:
        return self.metadata.get(CONFIG_KEY) or None

    @property
    def config_path(self) -> str | None:
        return self.metadata.get(CONFIG_PATH_KEY) or None

    @property
    def suite(self) -> str | None:
        return self.metadata.get(SUITE_KEY) or None

    @property
    def debug(self) -> bool:
        return DEBUG_KEY in self.metadata

    def is_report_request(self, report_route: str = REPORT_ROUTE) -> bool:
        return report_route in self.path

    @property
    def report_route(self) -> str:
        """Last path segment, e.g. ``html`` for ``/c3/report/html/``."""
        trimmed = self.path.split("?", 1)[0].rstrip("/")
        return trimmed.rsplit("/", 1)[-1]


def _request_uri(scope: Mapping[str, Any]) -> str:
    path = scope.get("path", "")
    query = scope.get("query_string") or b""
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path
