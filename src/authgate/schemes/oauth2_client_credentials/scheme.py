"""OAuth2 Client Credentials grant scheme.

No user is involved. The scheme accepts a valid bearer token presented by
the caller, or else looks up a cached token through the token store and
session id extractor:

- a cached token that is live and valid is used as is;
- a cached token inside the refresh buffer is refreshed with its
  ``refresh_token``; a failed refresh denies the request;
- with no cached token the request is denied, unless ``fetch_on_miss``
  is set, in which case a ``client_credentials`` grant is made and the
  result cached.
"""

from __future__ import annotations

import logging
from typing import Optional

from authgate.auth.base import AuthDecision
from authgate.auth.capabilities import SessionIDExtractor, TokenStore, TokenValidator
from authgate.exceptions import InvalidCredentialError, MissingCredentialError
from authgate.models import ClientCredentialsSettings, Token
from authgate.oauth.flow import OAuth2Scheme
from authgate.oauth.refresh import RefreshCoordinator
from authgate.wsgi import Environ, WSGIApp

logger = logging.getLogger(__name__)


class ClientCredentialsScheme(OAuth2Scheme):
    """Authenticate with a cached (or freshly granted) client credentials token."""

    settings: ClientCredentialsSettings

    def __init__(
        self,
        settings: ClientCredentialsSettings,
        token_validator: Optional[TokenValidator] = None,
        token_store: Optional[TokenStore] = None,
        session_id_extractor: Optional[SessionIDExtractor] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
        client_secret: Optional[str] = None,
        refresh_coordinator: Optional[RefreshCoordinator] = None,
    ):
        super().__init__(
            settings,
            token_validator=token_validator,
            token_store=token_store,
            session_id_extractor=session_id_extractor,
            unauthorized_handler=unauthorized_handler,
            client_secret=client_secret,
            refresh_coordinator=refresh_coordinator,
        )

    @property
    def auth_type(self) -> str:
        return "oauth2_client_credentials"

    def validate_config(self) -> list[str]:
        errors = super().validate_config()
        if self.settings.fetch_on_miss and not self.client.client_secret:
            errors.append("oauth2_client_credentials with 'fetch_on_miss' requires a client secret")
        return errors

    def authenticate(self, environ: Environ) -> AuthDecision:
        token = self.presented_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)

        session_id = self.session_id(environ)
        if self.token_store is None or not session_id:
            raise MissingCredentialError("No token store or session for client credentials")

        store = self.token_store
        cached = store.load(session_id)
        if cached is None:
            cached = self._fetch(session_id, store)
        elif cached.needs_refresh(self.settings.refresh_buffer):
            cached = self.refresh_stored(session_id, cached, store)
        elif cached.is_expired():
            logger.debug("Cached client credentials token expired without refresh token")
            cached = self._fetch(session_id, store)

        if not self.accepts_stored(cached):
            raise InvalidCredentialError("Cached client credentials token rejected")
        return AuthDecision.allow(token=cached)

    def _fetch(self, session_id: str, store: TokenStore) -> Token:
        if not self.settings.fetch_on_miss:
            raise MissingCredentialError("No usable cached client credentials token")
        token = self.client.client_credentials(self.scopes)
        store.save(session_id, token)
        logger.debug("Obtained client credentials token")
        return token
