"""HTTP Basic authentication scheme.

This module provides :class:`BasicScheme`, which implements the ``basic``
auth type. The ``Authorization: Basic <encoded>`` header is Base64-decoded
into a ``username:password`` pair and handed to a
:class:`~authgate.auth.capabilities.PasswordValidator`. On success the
username is exposed as ``REMOTE_USER``.

See Also:
    :class:`authgate.auth.base.AuthScheme` for the base interface.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import PasswordValidator
from authgate.exceptions import AuthError, InvalidCredentialError, MalformedCredentialError, MissingCredentialError
from authgate.models import BasicSettings
from authgate.wsgi import Environ, Response, WSGIApp, get_header

BASIC_PREFIX = "Basic "


def parse_basic_credentials(authorization: Optional[str]) -> tuple[str, str]:
    """Decode an ``Authorization`` header value into ``(username, password)``.

    The password is everything after the first colon, so it may itself
    contain colons.

    Raises:
        MissingCredentialError: If the header is absent or not ``Basic``.
        MalformedCredentialError: If the payload is not Base64 or has no colon.
    """
    if not authorization or not authorization.startswith(BASIC_PREFIX):
        raise MissingCredentialError("No Basic credentials")
    try:
        decoded = base64.b64decode(authorization[len(BASIC_PREFIX):].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise MalformedCredentialError("Basic credentials are not valid Base64") from exc
    username, sep, password = decoded.partition(":")
    if not sep:
        raise MalformedCredentialError("Basic credentials lack a ':' separator")
    return username, password


class BasicScheme(AuthScheme):
    """Authenticate via HTTP Basic authentication.

    Args:
        validator: Called with ``(username, password)``; must return ``True``
            to accept.
        settings: Realm configuration; defaults to realm ``"Restricted"``.
        unauthorized_handler: Optional WSGI app replacing the default 401.
    """

    def __init__(
        self,
        validator: PasswordValidator,
        settings: Optional[BasicSettings] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(unauthorized_handler)
        self.validator = validator
        self.settings = settings or BasicSettings()

    @property
    def auth_type(self) -> str:
        return "basic"

    @property
    def realm(self) -> str:
        return self.settings.realm

    def authenticate(self, environ: Environ) -> AuthDecision:
        username, password = parse_basic_credentials(get_header(environ, "Authorization"))
        if not self.validator(username, password):
            raise InvalidCredentialError(f"Basic credentials rejected for user {username!r}")
        return AuthDecision.allow(user=username)

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        return Response(
            error.status,
            [("WWW-Authenticate", f'Basic realm="{self.realm}"')],
            "Unauthorized",
        )
