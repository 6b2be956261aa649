"""Shared test fixtures for authgate.

Provides WSGI environ builders, a synchronous WSGI caller, a recording
downstream application, output-state resets, and the Typer CLI runner.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import pytest

from authgate.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# WSGI helpers
# ---------------------------------------------------------------------------


@dataclass
class WSGIResult:
    """What a WSGI application answered."""

    status: int
    headers: dict[str, str]
    body: str

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


@dataclass
class Downstream:
    """A WSGI application that records every environ it is called with."""

    calls: list[dict[str, Any]] = field(default_factory=list)

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
        self.calls.append(environ)
        start_response("200 OK", [("Content-Type", "text/plain")])
        return [b"ok"]

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def environ(self) -> dict[str, Any]:
        return self.calls[-1]


def build_environ(
    path: str = "/",
    method: str = "GET",
    query: str = "",
    headers: Optional[dict[str, str]] = None,
    **extra: Any,
) -> dict[str, Any]:
    environ: dict[str, Any] = {
        "REQUEST_METHOD": method,
        "SCRIPT_NAME": "",
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "SERVER_NAME": "testserver",
        "SERVER_PORT": "80",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "wsgi.url_scheme": "http",
        "wsgi.input": io.BytesIO(b""),
    }
    for name, value in (headers or {}).items():
        key = name.upper().replace("-", "_")
        if key not in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            key = f"HTTP_{key}"
        environ[key] = value
    environ.update(extra)
    return environ


def call_wsgi(app: Callable[..., Any], environ: dict[str, Any]) -> WSGIResult:
    captured: dict[str, Any] = {}

    def start_response(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> None:
        captured["status"] = status
        captured["headers"] = headers

    body = b"".join(app(environ, start_response))
    return WSGIResult(
        status=int(captured["status"].split(" ", 1)[0]),
        headers=dict(captured["headers"]),
        body=body.decode("utf-8"),
    )


@pytest.fixture
def make_environ() -> Callable[..., dict[str, Any]]:
    """Factory for minimal WSGI environs.

    Example::

        environ = make_environ("/api", headers={"Authorization": "Bearer x"})
    """
    return build_environ


@pytest.fixture
def call_app() -> Callable[..., WSGIResult]:
    """Call a WSGI app synchronously and collect status, headers, and body."""
    return call_wsgi


@pytest.fixture
def downstream() -> Downstream:
    """A recording downstream application answering ``200 ok``."""
    return Downstream()


@pytest.fixture
def basic_header() -> Callable[[str, str], str]:
    """Build an ``Authorization: Basic`` header value."""

    def build(username: str, password: str) -> str:
        encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    return build


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
