"""OpenID Connect scheme.

The mode is chosen explicitly in :class:`~authgate.models.OpenIDConnectSettings`:

- ``bearer`` -- requests must present ``Authorization: Bearer <id token>``,
  checked by the token validator.
- ``redirect`` -- the Authorization Code flow against ``issuer_url``
  (``/authorize`` and ``/token``), with ``openid`` always among the
  requested scopes. Stored and refreshed tokens are checked on their
  ``id_token``, not their access token.

With ``discovery`` enabled, endpoints are read once from the issuer's
``/.well-known/openid-configuration`` document instead.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import httpx

from authgate.auth.base import AuthDecision
from authgate.auth.capabilities import SessionIDExtractor, StateStore, TokenStore, TokenValidator
from authgate.exceptions import InvalidCredentialError, MissingCredentialError, TokenExchangeError
from authgate.models import OIDCMode, OpenIDConnectSettings, Token
from authgate.oauth.flow import RedirectFlowScheme
from authgate.oauth.refresh import RefreshCoordinator
from authgate.schemes.bearer.scheme import extract_bearer_token
from authgate.wsgi import Environ, WSGIApp

logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/.well-known/openid-configuration"


def discover(issuer_url: str, timeout: float = 30.0) -> dict[str, Any]:
    """Fetch and return the OpenID Connect discovery document.

    Args:
        issuer_url: The provider's issuer URL; the well-known path is appended.
        timeout: Request timeout in seconds.

    Returns:
        The parsed JSON discovery document.

    Raises:
        TokenExchangeError: If the document cannot be fetched or parsed, or
            lacks ``authorization_endpoint``/``token_endpoint``.
    """
    url = issuer_url.rstrip("/") + DISCOVERY_PATH
    try:
        response = httpx.get(
            url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
        doc: dict[str, Any] = response.json()
    except httpx.HTTPStatusError as exc:
        raise TokenExchangeError(
            f"OpenID discovery failed with status {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise TokenExchangeError(f"OpenID discovery failed: {exc}") from exc
    except ValueError as exc:
        raise TokenExchangeError("OpenID discovery returned invalid JSON") from exc

    if "authorization_endpoint" not in doc:
        raise TokenExchangeError("OpenID discovery document missing 'authorization_endpoint'")
    if "token_endpoint" not in doc:
        raise TokenExchangeError("OpenID discovery document missing 'token_endpoint'")
    return doc


class OpenIDConnectScheme(RedirectFlowScheme):
    """Authenticate via OpenID Connect, in bearer or redirect mode."""

    settings: OpenIDConnectSettings
    validated_field = "id_token"

    def __init__(
        self,
        settings: OpenIDConnectSettings,
        token_validator: Optional[TokenValidator] = None,
        state_store: Optional[StateStore] = None,
        token_store: Optional[TokenStore] = None,
        session_id_extractor: Optional[SessionIDExtractor] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
        client_secret: Optional[str] = None,
        refresh_coordinator: Optional[RefreshCoordinator] = None,
    ):
        super().__init__(
            settings,
            state_store=state_store,
            token_validator=token_validator,
            token_store=token_store,
            session_id_extractor=session_id_extractor,
            unauthorized_handler=unauthorized_handler,
            client_secret=client_secret,
            refresh_coordinator=refresh_coordinator,
        )
        issuer = settings.issuer_url.rstrip("/")
        self._authorization_endpoint = f"{issuer}/authorize" if issuer else ""
        if not settings.token_url and issuer:
            self.client.token_url = f"{issuer}/token"
        self._discovered = not settings.discovery
        self._discovery_lock = threading.Lock()

    @property
    def auth_type(self) -> str:
        return "openid_connect"

    @property
    def mode(self) -> OIDCMode:
        return self.settings.mode

    @property
    def authorization_url(self) -> str:
        return self._authorization_endpoint

    @property
    def scopes(self) -> list[str]:
        scopes = list(self.settings.scopes)
        if "openid" not in scopes:
            scopes.append("openid")
        return scopes

    def validate_config(self) -> list[str]:
        if self.mode is OIDCMode.BEARER:
            if self.token_validator is None:
                return ["openid_connect in bearer mode requires a token validator"]
            return []
        errors: list[str] = []
        if not self.settings.issuer_url:
            errors.append("openid_connect in redirect mode requires 'issuer_url'")
        if not self.settings.client_id:
            errors.append("openid_connect in redirect mode requires 'client_id'")
        if not self.redirect_url:
            errors.append("openid_connect in redirect mode requires 'redirect_url'")
        return errors

    def authenticate(self, environ: Environ) -> AuthDecision:
        if self.mode is OIDCMode.BEARER:
            return self._authenticate_bearer(environ)
        self.ensure_discovered()
        return super().authenticate(environ)

    def ensure_discovered(self) -> None:
        """Load endpoints from the discovery document once, if enabled.

        Raises:
            TokenExchangeError: If discovery fails; it is retried on the
                next request.
        """
        if self._discovered:
            return
        with self._discovery_lock:
            if self._discovered:
                return
            doc = discover(self.settings.issuer_url, self.settings.timeout)
            self._authorization_endpoint = doc["authorization_endpoint"]
            if not self.settings.token_url:
                self.client.token_url = doc["token_endpoint"]
            self._discovered = True
            logger.info("Discovered OpenID endpoints for %s", self.settings.issuer_url)

    def _authenticate_bearer(self, environ: Environ) -> AuthDecision:
        value = extract_bearer_token(environ)
        if value is None:
            raise MissingCredentialError("No bearer token")
        if not self.accepts_presented(value):
            raise InvalidCredentialError("ID token rejected")
        return AuthDecision.allow(token=Token(access_token=value, id_token=value))
