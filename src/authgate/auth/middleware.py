"""WSGI dispatcher that puts one scheme in front of an application.

:class:`AuthMiddleware` asks its scheme for a decision on every request:

- *proceed* -- the granted token (if any) is attached under
  ``environ["authgate.token"]``, the user (if any) under ``REMOTE_USER``
  and ``AUTH_TYPE``, and the wrapped application runs;
- *respond* -- the scheme's prepared response (redirect, device code
  JSON) is sent and the application does not run;
- :class:`~authgate.exceptions.AuthError` -- the error is stored under
  ``environ["authgate.error"]`` and the scheme's challenge, or the custom
  unauthorized handler, answers.

Several middlewares nest to form a chain; every layer must let a request
through for the application to run. :func:`chain` builds such a stack.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from authgate.auth.base import AuthScheme
from authgate.exceptions import AuthError, MissingCredentialError
from authgate.wsgi import ERROR_KEY, Environ, StartResponse, WSGIApp, set_token

logger = logging.getLogger(__name__)


class AuthMiddleware:
    """Authenticate requests with *scheme* before calling *application*.

    Args:
        application: The downstream WSGI application.
        scheme: The scheme making the decision.
        unauthorized_handler: Optional WSGI app that answers denied requests
            instead of the scheme's challenge; takes precedence over a
            handler set on the scheme, for this middleware only. Never used
            for errors that are not replaceable (state mismatch, pending
            device authorization).
        allow_anonymous: Let requests that carry no credential at all
            through unauthenticated. Malformed or rejected credentials are
            still denied.

    Example::

        app = AuthMiddleware(app, BasicScheme(check_password))
    """

    def __init__(
        self,
        application: WSGIApp,
        scheme: AuthScheme,
        unauthorized_handler: Optional[WSGIApp] = None,
        allow_anonymous: bool = False,
    ):
        self.application = application
        self.scheme = scheme
        self.unauthorized_handler = unauthorized_handler
        self.allow_anonymous = allow_anonymous

    def __call__(self, environ: Environ, start_response: StartResponse) -> Iterable[bytes]:
        try:
            decision = self.scheme.authenticate(environ)
        except AuthError as exc:
            if self.allow_anonymous and isinstance(exc, MissingCredentialError):
                logger.debug("%s: no credential, continuing anonymously", self.scheme.auth_type)
                return self.application(environ, start_response)
            logger.debug("%s denied request: %s (%s)", self.scheme.auth_type, type(exc).__name__, exc)
            environ[ERROR_KEY] = exc
            if exc.replaceable and self.unauthorized_handler is not None:
                return self.unauthorized_handler(environ, start_response)
            return self.scheme.deny(environ, exc)(environ, start_response)

        if decision.response is not None:
            return decision.response(environ, start_response)
        if decision.token is not None:
            set_token(environ, decision.token)
        if decision.user is not None:
            environ["REMOTE_USER"] = decision.user
            environ["AUTH_TYPE"] = self.scheme.auth_type
        return self.application(environ, start_response)

    def __repr__(self) -> str:
        return f"AuthMiddleware(scheme={self.scheme!r})"


def chain(application: WSGIApp, *layers: Callable[[WSGIApp], WSGIApp]) -> WSGIApp:
    """Wrap *application* in *layers*, the first layer outermost.

    Each layer is a callable taking and returning a WSGI application, e.g.
    ``lambda app: AuthMiddleware(app, scheme)`` or
    ``require_all_scopes("read")``.
    """
    for layer in reversed(layers):
        application = layer(application)
    return application
