"""HTTP Digest access authentication scheme.

This module provides :class:`DigestScheme`, which implements the
``digest`` auth type with the MD5 algorithm:

1. The ``Authorization: Digest ...`` header is parsed into ``key="value"``
   pairs; ``username``, ``realm``, ``nonce``, ``uri``, and ``response`` are
   required.
2. ``realm`` must equal the configured realm and ``uri`` must equal the
   request path exactly.
3. The password comes from a
   :class:`~authgate.auth.capabilities.PasswordLookup`; the nonce must be
   live in the scheme's :class:`~authgate.auth.nonce.NonceStore`.
4. ``HA1 = MD5(username:realm:password)`` and ``HA2 = MD5(method:uri)``.
   When ``qop``, ``nc``, and ``cnonce`` are all present the expected
   response is ``MD5(HA1:nonce:nc:cnonce:qop:HA2)``, otherwise
   ``MD5(HA1:nonce:HA2)``.

A denied request gets a fresh nonce in its challenge. A nonce stays usable
until its TTL elapses unless ``single_use_nonces`` is set.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional
from urllib.request import parse_http_list

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import PasswordLookup
from authgate.auth.nonce import NonceStore
from authgate.exceptions import (
    AuthError,
    InvalidCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
    NonceError,
)
from authgate.models import DigestSettings
from authgate.wsgi import Environ, Response, WSGIApp, get_header, request_method, request_path

logger = logging.getLogger(__name__)

DIGEST_PREFIX = "Digest "
REQUIRED_FIELDS = ("username", "realm", "nonce", "uri", "response")


def _md5_hex(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def parse_digest_params(header_value: str) -> dict[str, str]:
    """Parse the comma-separated ``key="value"`` list after ``Digest ``.

    Quotes around values are removed; items without ``=`` are ignored.
    """
    params: dict[str, str] = {}
    for item in parse_http_list(header_value):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        params[key.strip()] = value.strip().strip('"')
    return params


def digest_response(
    username: str,
    realm: str,
    password: str,
    method: str,
    uri: str,
    nonce: str,
    nc: Optional[str] = None,
    cnonce: Optional[str] = None,
    qop: Optional[str] = None,
) -> str:
    """Compute the lowercase hex ``response`` value for a Digest request."""
    ha1 = _md5_hex(f"{username}:{realm}:{password}")
    ha2 = _md5_hex(f"{method}:{uri}")
    if qop and nc and cnonce:
        return _md5_hex(f"{ha1}:{nonce}:{nc}:{cnonce}:{qop}:{ha2}")
    return _md5_hex(f"{ha1}:{nonce}:{ha2}")


def build_authorization(
    username: str,
    realm: str,
    password: str,
    method: str,
    uri: str,
    nonce: str,
    nc: Optional[str] = None,
    cnonce: Optional[str] = None,
    qop: Optional[str] = None,
) -> str:
    """Build a complete ``Authorization`` header value, as a client would."""
    response = digest_response(username, realm, password, method, uri, nonce, nc, cnonce, qop)
    parts = {
        "username": username,
        "realm": realm,
        "nonce": nonce,
        "uri": uri,
        "response": response,
    }
    if qop and nc and cnonce:
        parts.update(qop=qop, nc=nc, cnonce=cnonce)
    return DIGEST_PREFIX + ", ".join(f'{key}="{value}"' for key, value in parts.items())


class DigestScheme(AuthScheme):
    """Authenticate via HTTP Digest authentication.

    Args:
        password_lookup: Returns the clear-text password for
            ``(username, realm)``, or ``None`` for unknown users.
        settings: Realm, nonce TTL, and nonce reuse policy.
        nonce_store: Store for issued nonces. Defaults to a private
            :class:`~authgate.auth.nonce.NonceStore` using the settings' TTL.
        unauthorized_handler: Optional WSGI app replacing the default
            challenge. No nonce is issued when it answers.
    """

    def __init__(
        self,
        password_lookup: PasswordLookup,
        settings: Optional[DigestSettings] = None,
        nonce_store: Optional[NonceStore] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(unauthorized_handler)
        self.password_lookup = password_lookup
        self.settings = settings or DigestSettings()
        self.nonce_store = nonce_store if nonce_store is not None else NonceStore(ttl=self.settings.nonce_ttl)

    @property
    def auth_type(self) -> str:
        return "digest"

    @property
    def realm(self) -> str:
        return self.settings.realm

    def authenticate(self, environ: Environ) -> AuthDecision:
        authorization = get_header(environ, "Authorization")
        if not authorization or not authorization.startswith(DIGEST_PREFIX):
            raise MissingCredentialError("No Digest credentials")
        params = parse_digest_params(authorization[len(DIGEST_PREFIX):])

        missing = [name for name in REQUIRED_FIELDS if not params.get(name)]
        if missing:
            raise MalformedCredentialError(f"Digest credentials missing {', '.join(missing)}")
        if params["realm"] != self.realm:
            raise InvalidCredentialError("Digest realm mismatch")
        if params["uri"] != request_path(environ):
            raise InvalidCredentialError("Digest uri does not match the request path")

        username = params["username"]
        password = self.password_lookup(username, self.realm)
        if password is None:
            raise InvalidCredentialError(f"Unknown Digest user {username!r}")

        nonce = params["nonce"]
        if not self.nonce_store.is_valid(nonce):
            raise NonceError("Unknown or expired nonce")

        expected = digest_response(
            username,
            self.realm,
            password,
            request_method(environ),
            params["uri"],
            nonce,
            params.get("nc"),
            params.get("cnonce"),
            params.get("qop"),
        )
        if expected != params["response"]:
            raise InvalidCredentialError(f"Digest response mismatch for user {username!r}")

        if self.settings.single_use_nonces:
            self.nonce_store.discard(nonce)
        return AuthDecision.allow(user=username)

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        nonce = self.nonce_store.issue()
        logger.debug("Issued Digest challenge (%s)", type(error).__name__)
        header = f'Digest realm="{self.realm}", nonce="{nonce}", algorithm=MD5, qop="auth"'
        return Response(error.status, [("WWW-Authenticate", header)], "Unauthorized")
