"""Scope-based authorization after authentication.

The gates read the token an upstream OAuth2/OIDC scheme attached to the
environ and compare its space-delimited ``scope`` against a required set:

- no token in the environ -- 401 ``No token in context``;
- requirement not met -- 403 ``Insufficient scopes``.

An empty requirement always passes :class:`RequireAllScopes` and always
fails :class:`RequireAnyScopes`.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from authgate.exceptions import AuthError, InsufficientScopeError, NoTokenInContextError
from authgate.wsgi import ERROR_KEY, Environ, Response, StartResponse, WSGIApp, get_token

logger = logging.getLogger(__name__)

NO_TOKEN_BODY = "No token in context"
INSUFFICIENT_SCOPE_BODY = "Insufficient scopes"


def has_all_scopes(granted: Iterable[str], required: Iterable[str]) -> bool:
    """Return ``True`` if every required scope is granted."""
    granted_set = set(granted)
    return all(scope in granted_set for scope in required)


def has_any_scopes(granted: Iterable[str], required: Iterable[str]) -> bool:
    """Return ``True`` if at least one required scope is granted."""
    granted_set = set(granted)
    return any(scope in granted_set for scope in required)


class _ScopeGate:
    predicate: Callable[[Iterable[str], Iterable[str]], bool]

    def __init__(self, application: WSGIApp, *required: str):
        self.application = application
        self.required = tuple(required)

    def check(self, environ: Environ) -> None:
        """Raise unless the environ's token satisfies the requirement.

        Raises:
            NoTokenInContextError: If no token is attached.
            InsufficientScopeError: If the scopes do not match.
        """
        token = get_token(environ)
        if token is None:
            raise NoTokenInContextError(NO_TOKEN_BODY)
        if not type(self).predicate(token.scopes(), self.required):
            raise InsufficientScopeError(f"Token lacks scopes {' '.join(self.required)!r}")

    def __call__(self, environ: Environ, start_response: StartResponse) -> Iterable[bytes]:
        try:
            self.check(environ)
        except AuthError as exc:
            logger.debug("Scope gate denied request: %s", exc)
            environ[ERROR_KEY] = exc
            body = NO_TOKEN_BODY if isinstance(exc, NoTokenInContextError) else INSUFFICIENT_SCOPE_BODY
            return Response(exc.status, body=body)(environ, start_response)
        return self.application(environ, start_response)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(self.required)})"


class RequireAllScopes(_ScopeGate):
    """Let requests through only if the token carries every required scope."""

    predicate = staticmethod(has_all_scopes)


class RequireAnyScopes(_ScopeGate):
    """Let requests through if the token carries at least one required scope."""

    predicate = staticmethod(has_any_scopes)


def require_all_scopes(*required: str) -> Callable[[WSGIApp], WSGIApp]:
    """Layer factory for :func:`~authgate.auth.middleware.chain`."""
    return lambda application: RequireAllScopes(application, *required)


def require_any_scopes(*required: str) -> Callable[[WSGIApp], WSGIApp]:
    """Layer factory for :func:`~authgate.auth.middleware.chain`."""
    return lambda application: RequireAnyScopes(application, *required)
