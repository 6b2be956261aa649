"""HTTP status codes emitted by the authentication layer.

Each constant is referenced by the corresponding
:class:`~authgate.exceptions.AuthgateError` subclass, or by the scheme that
answers a request directly (device polling, redirects). WSGI wants the full
status line, so :func:`status_line` renders ``"401 Unauthorized"`` style
strings from these numbers.

Example::

    start_response(status_line(HTTP_UNAUTHORIZED), headers)
"""

from http import HTTPStatus

HTTP_OK = 200
"""The request was authenticated, or a device code was issued."""

HTTP_ACCEPTED = 202
"""A device authorization is still pending; the client should poll again."""

HTTP_FOUND = 302
"""The client is redirected to an authorization endpoint."""

HTTP_BAD_REQUEST = 400
"""An authorization callback carried an unknown ``state`` value."""

HTTP_UNAUTHORIZED = 401
"""The credential is missing, malformed, or invalid."""

HTTP_FORBIDDEN = 403
"""The token is valid but lacks the required scopes."""

HTTP_INTERNAL_SERVER_ERROR = 500
"""The gateway itself is misconfigured."""


def status_line(code: int) -> str:
    """Return the WSGI status line for *code*, e.g. ``"403 Forbidden"``."""
    return f"{code} {HTTPStatus(code).phrase}"


EXIT_GENERIC_FAILURE = 1
"""CLI exit code for an unclassified error."""

EXIT_CONFIG_ERROR = 2
"""CLI exit code for a missing or invalid configuration file."""

EXIT_AUTH_FAILURE = 3
"""CLI exit code for a failed interactive authentication (device login)."""
