"""API key authentication scheme.

This module provides :class:`ApiKeyScheme`, which implements the
``api_key`` auth type. The key's ``location`` selects where it is read:

- ``header`` -- a request header named ``key_name``
- ``query`` -- a query-string parameter named ``key_name``
- ``cookie`` -- a cookie named ``key_name``
"""

from __future__ import annotations

from typing import Optional

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import KeyValidator
from authgate.exceptions import InvalidCredentialError, MissingCredentialError
from authgate.models import ApiKeyLocation, ApiKeySettings
from authgate.wsgi import Environ, WSGIApp, get_cookie, get_header, query_params


class ApiKeyScheme(AuthScheme):
    """Authenticate via a static API key.

    Args:
        validator: Called with the key; must return ``True`` to accept.
        settings: Where to read the key from; defaults to the
            ``X-API-Key`` header.
        unauthorized_handler: Optional WSGI app replacing the default 401.
    """

    def __init__(
        self,
        validator: KeyValidator,
        settings: Optional[ApiKeySettings] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(unauthorized_handler)
        self.validator = validator
        self.settings = settings or ApiKeySettings()

    @property
    def auth_type(self) -> str:
        return "api_key"

    def authenticate(self, environ: Environ) -> AuthDecision:
        key = self._extract(environ)
        if not key:
            raise MissingCredentialError(f"No API key in {self.settings.location.value} {self.settings.key_name!r}")
        if not self.validator(key):
            raise InvalidCredentialError("API key rejected")
        return AuthDecision.allow()

    def validate_config(self) -> list[str]:
        errors: list[str] = []
        if not self.settings.key_name:
            errors.append("api_key requires 'key_name'")
        return errors

    def _extract(self, environ: Environ) -> Optional[str]:
        name = self.settings.key_name
        location = self.settings.location
        if location is ApiKeyLocation.HEADER:
            return get_header(environ, name)
        if location is ApiKeyLocation.QUERY:
            return query_params(environ).get(name)
        return get_cookie(environ, name)
