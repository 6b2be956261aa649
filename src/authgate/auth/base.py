"""Abstract base class for authentication schemes.

This module defines the two foundational types of the auth subsystem:

- :class:`AuthDecision` -- the outcome of a successful
  :meth:`~AuthScheme.authenticate` call: either *proceed* (optionally with
  a token and a user name) or *respond* with a prepared response such as a
  redirect.
- :class:`AuthScheme` -- the abstract base class every scheme extends.

Denials are not decisions. A scheme signals them by raising an
:class:`~authgate.exceptions.AuthError` subclass; the dispatcher then asks
the scheme for its :meth:`~AuthScheme.challenge` (or hands the request to a
custom unauthorized handler).

To implement a new scheme, subclass :class:`AuthScheme`, set the
:attr:`~AuthScheme.auth_type` property, and implement
:meth:`~AuthScheme.authenticate`. Override :meth:`~AuthScheme.challenge`
for scheme-specific ``WWW-Authenticate`` headers and
:meth:`~AuthScheme.validate_config` for upfront checks.

See Also:
    :mod:`authgate.auth.middleware` for the dispatcher.
    :mod:`authgate.auth.manager` for scheme registration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from authgate.exceptions import AuthError
from authgate.models import Token
from authgate.wsgi import Environ, Response, WSGIApp

_DEFAULT_BODIES = {
    400: "Invalid state",
    401: "Unauthorized",
    403: "Forbidden",
}


class AuthDecision:
    """Outcome of an authentication attempt that did not fail.

    Use the named constructors rather than the initializer.

    Example::

        AuthDecision.allow(token=token)
        AuthDecision.allow(user="alice")
        AuthDecision.redirect("https://idp.example.com/authorize?...")
    """

    def __init__(
        self,
        token: Optional[Token] = None,
        user: Optional[str] = None,
        response: Optional[Response] = None,
    ):
        self.token = token
        self.user = user
        self.response = response

    @classmethod
    def allow(cls, token: Optional[Token] = None, user: Optional[str] = None) -> AuthDecision:
        return cls(token=token, user=user)

    @classmethod
    def respond(cls, response: Response) -> AuthDecision:
        return cls(response=response)

    @classmethod
    def redirect(cls, location: str) -> AuthDecision:
        return cls(response=Response.redirect(location))

    @property
    def proceed(self) -> bool:
        """``True`` when the downstream application should run."""
        return self.response is None

    def __repr__(self) -> str:
        if self.response is not None:
            return f"AuthDecision(response={self.response!r})"
        return f"AuthDecision(user={self.user!r}, token={'set' if self.token else None})"


class AuthScheme(ABC):
    """Abstract base class for authentication schemes.

    Every concrete scheme (Basic, Digest, the OAuth2 flows, etc.) must
    subclass this and provide:

    1. An :attr:`auth_type` property returning a unique string identifier
       (e.g. ``"basic"``, ``"digest"``, ``"oauth2_auth_code"``).
    2. An :meth:`authenticate` implementation that inspects the WSGI
       environ and returns an :class:`AuthDecision` or raises
       :class:`~authgate.exceptions.AuthError`.

    Args:
        unauthorized_handler: Optional WSGI application that answers denied
            requests in place of :meth:`challenge`. It receives the original
            environ, with the error under ``environ["authgate.error"]``.
    """

    def __init__(self, unauthorized_handler: Optional[WSGIApp] = None):
        self.unauthorized_handler = unauthorized_handler

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the unique scheme type identifier.

        Returns:
            A lowercase string such as ``"basic"`` or ``"openid_connect"``.
        """
        ...

    @abstractmethod
    def authenticate(self, environ: Environ) -> AuthDecision:
        """Decide what to do with a request.

        Implementations may mutate *environ* (e.g. strip a consumed query
        parameter) but must not call ``start_response``.

        Args:
            environ: The WSGI environ of the inbound request.

        Returns:
            An :class:`AuthDecision`.

        Raises:
            AuthError: If the request must be denied.
        """
        ...

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        """Build the default deny response for *error*.

        The base implementation answers with the error's status and a short
        plain-text body. Schemes override this to add ``WWW-Authenticate``.
        """
        return Response(error.status, body=_DEFAULT_BODIES.get(error.status, "Unauthorized"))

    def deny(self, environ: Environ, error: AuthError) -> WSGIApp:
        """Return the WSGI application that answers a denied request."""
        if error.replaceable and self.unauthorized_handler is not None:
            return self.unauthorized_handler
        return self.challenge(environ, error)

    def validate_config(self) -> list[str]:
        """Validate the scheme's configuration before use.

        Returns:
            A list of error message strings. An empty list means the
            configuration is valid.
        """
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(auth_type={self.auth_type!r})"
