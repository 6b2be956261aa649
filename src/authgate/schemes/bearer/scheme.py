"""HTTP Bearer token authentication scheme.

This module provides :class:`BearerScheme`, which implements the ``bearer``
auth type, and :func:`extract_bearer_token`, the extractor shared with the
OAuth2 flows (which all accept an already-issued bearer token before
starting their own flow).

See Also:
    :class:`authgate.auth.base.AuthScheme` for the base interface.
"""

from __future__ import annotations

from typing import Optional

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import TokenValidator
from authgate.exceptions import AuthError, InvalidCredentialError, MalformedCredentialError, MissingCredentialError
from authgate.models import BearerSettings, Token
from authgate.wsgi import Environ, Response, WSGIApp, get_header

BEARER_PREFIX = "Bearer "


def extract_bearer_token(environ: Environ) -> Optional[str]:
    """Return the token of an ``Authorization: Bearer <token>`` header.

    Returns ``None`` when the header is absent or uses another scheme.

    Raises:
        MalformedCredentialError: If the prefix is present but the token is empty.
    """
    authorization = get_header(environ, "Authorization")
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MalformedCredentialError("Empty bearer token")
    return token


def bearer_challenge(error: AuthError) -> Response:
    """The default 401 for token-based schemes."""
    return Response(error.status, [("WWW-Authenticate", "Bearer")], "Unauthorized")


class BearerScheme(AuthScheme):
    """Authenticate via an opaque bearer token.

    The token is attached to the request context as a
    :class:`~authgate.models.Token` with only ``access_token`` set.

    Args:
        validator: Called with the token string; must return ``True`` to accept.
        settings: Declarative settings (only ``name`` is meaningful).
        unauthorized_handler: Optional WSGI app replacing the default 401.
    """

    def __init__(
        self,
        validator: TokenValidator,
        settings: Optional[BearerSettings] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(unauthorized_handler)
        self.validator = validator
        self.settings = settings or BearerSettings()

    @property
    def auth_type(self) -> str:
        return "bearer"

    def authenticate(self, environ: Environ) -> AuthDecision:
        token = extract_bearer_token(environ)
        if token is None:
            raise MissingCredentialError("No bearer token")
        if not self.validator(token):
            raise InvalidCredentialError("Bearer token rejected")
        return AuthDecision.allow(token=Token(access_token=token))

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        return bearer_challenge(error)
