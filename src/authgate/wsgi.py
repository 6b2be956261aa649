"""Helpers for reading requests from, and writing responses to, WSGI.

Schemes never touch ``start_response`` themselves. They read the request
through the accessor functions here and describe their answer as a
:class:`Response`, which is itself a WSGI application.

The environ doubles as the request-scoped context. Keys written by this
package:

- ``authgate.token`` -- the :class:`~authgate.models.Token` granted by an
  OAuth2/OIDC scheme, read back with :func:`get_token`.
- ``authgate.error`` -- the :class:`~authgate.exceptions.AuthError` that
  caused a denial, visible to custom unauthorized handlers.
- ``REMOTE_USER`` / ``AUTH_TYPE`` -- set by schemes that identify a user.
"""

from __future__ import annotations

import json
from http.cookies import CookieError, SimpleCookie
from typing import Any, Callable, Iterable, Optional
from urllib.parse import parse_qsl, urlencode

from authgate.models import Token
from authgate.status_codes import HTTP_FOUND, status_line

Environ = dict[str, Any]
StartResponse = Callable[..., Any]
WSGIApp = Callable[[Environ, StartResponse], Iterable[bytes]]

TOKEN_KEY = "authgate.token"
ERROR_KEY = "authgate.error"
PEER_CERTIFICATES_KEY = "authgate.peer_certificates"

_UNPREFIXED_HEADERS = {"CONTENT_TYPE", "CONTENT_LENGTH"}


# --- Request accessors ---


def get_header(environ: Environ, name: str) -> Optional[str]:
    """Return request header *name* (case-insensitive), or ``None``."""
    key = name.upper().replace("-", "_")
    if key not in _UNPREFIXED_HEADERS:
        key = f"HTTP_{key}"
    return environ.get(key)


def request_method(environ: Environ) -> str:
    return environ.get("REQUEST_METHOD", "GET").upper()


def request_path(environ: Environ) -> str:
    """Return the request path as the client sent it (``SCRIPT_NAME + PATH_INFO``)."""
    return environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")


def request_target(environ: Environ) -> str:
    """Return the path plus query string, suitable as a post-login return URL."""
    query = environ.get("QUERY_STRING", "")
    path = request_path(environ) or "/"
    return f"{path}?{query}" if query else path


def query_params(environ: Environ) -> dict[str, str]:
    """Parse ``QUERY_STRING``; the first value wins for repeated names."""
    params: dict[str, str] = {}
    for key, value in parse_qsl(environ.get("QUERY_STRING", ""), keep_blank_values=True):
        params.setdefault(key, value)
    return params


def remove_query_param(environ: Environ, name: str) -> None:
    """Drop every occurrence of *name* from ``QUERY_STRING`` in place."""
    pairs = parse_qsl(environ.get("QUERY_STRING", ""), keep_blank_values=True)
    environ["QUERY_STRING"] = urlencode([(key, value) for key, value in pairs if key != name])


def get_cookie(environ: Environ, name: str) -> Optional[str]:
    """Return the value of cookie *name*, or ``None`` if absent or unparsable."""
    raw = environ.get("HTTP_COOKIE")
    if not raw:
        return None
    cookies = SimpleCookie()
    try:
        cookies.load(raw)
    except CookieError:
        return None
    morsel = cookies.get(name)
    return morsel.value if morsel is not None else None


# --- Request-scoped context ---


def get_token(environ: Environ) -> Optional[Token]:
    """Return the token attached by an upstream OAuth2/OIDC scheme, if any."""
    return environ.get(TOKEN_KEY)


def set_token(environ: Environ, token: Token) -> None:
    environ[TOKEN_KEY] = token


# --- Responses ---


class Response:
    """A complete, precomputed HTTP response usable as a WSGI application.

    Args:
        status: Numeric HTTP status.
        headers: Extra response headers. ``Content-Type`` defaults to
            ``text/plain; charset=utf-8`` and ``Content-Length`` is always
            computed from *body*.
        body: Response body; ``str`` is encoded as UTF-8.
    """

    def __init__(
        self,
        status: int,
        headers: Optional[list[tuple[str, str]]] = None,
        body: str | bytes = b"",
    ):
        self.status = status
        self.headers = list(headers or [])
        self.body = body.encode("utf-8") if isinstance(body, str) else body

    @classmethod
    def json(cls, status: int, data: Any) -> Response:
        return cls(
            status,
            [("Content-Type", "application/json")],
            json.dumps(data),
        )

    @classmethod
    def redirect(cls, location: str) -> Response:
        return cls(HTTP_FOUND, [("Location", location)])

    def header(self, name: str) -> Optional[str]:
        """Return the first header named *name* (case-insensitive), or ``None``."""
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None

    def __call__(self, environ: Environ, start_response: StartResponse) -> list[bytes]:
        headers = [(k, v) for k, v in self.headers if k.lower() != "content-length"]
        if self.header("Content-Type") is None:
            headers.append(("Content-Type", "text/plain; charset=utf-8"))
        headers.append(("Content-Length", str(len(self.body))))
        start_response(status_line(self.status), headers)
        return [self.body]

    def __repr__(self) -> str:
        return f"Response(status={self.status}, headers={self.headers!r})"
