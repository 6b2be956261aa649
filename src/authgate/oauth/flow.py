"""Shared machinery for the OAuth2 and OpenID Connect schemes.

:class:`OAuth2Scheme` holds what every flow needs: the token endpoint
client, the token validator, the token store with its session id
extractor, and refresh coalescing. :class:`RedirectFlowScheme` adds the
redirect/callback state machine used by the Authorization Code and OpenID
Connect schemes::

    no credential --> 302 to authorization endpoint (state persisted)
    callback ?code&state --> state consumed --> code exchanged --> proceed
    bearer header valid --> proceed
    stored token live (refreshed if inside the buffer) --> proceed
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import SessionIDExtractor, StateStore, TokenStore, TokenValidator
from authgate.auth.stores import MemoryStateStore
from authgate.exceptions import AuthError, StateMismatchError, TokenExchangeError
from authgate.models import OAuth2Settings, PendingAuthorization, Token
from authgate.oauth.pkce import generate_pkce_pair
from authgate.oauth.refresh import RefreshCoordinator
from authgate.oauth.state import generate_state
from authgate.oauth.token_client import TokenClient
from authgate.schemes.bearer.scheme import bearer_challenge, extract_bearer_token
from authgate.wsgi import Environ, Response, WSGIApp, query_params, request_target

logger = logging.getLogger(__name__)

RETURN_TO_KEY = "authgate.return_to"


def build_url(base: str, params: dict[str, str]) -> str:
    """Append *params* to *base*, respecting an existing query string."""
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(params)}"


class OAuth2Scheme(AuthScheme):
    """Base class for schemes backed by an OAuth2 token endpoint.

    Presented bearer tokens are only accepted when a ``token_validator``
    is configured and approves them. Tokens this gateway obtained itself
    (from a store) are checked with the validator when one is configured
    and trusted otherwise.

    Args:
        settings: The flow's declarative settings.
        token_validator: Checks access (or ID) token strings.
        token_store: Where tokens are cached between requests.
        session_id_extractor: Derives the token store key from a request.
        unauthorized_handler: Optional WSGI app replacing the default 401.
        client_secret: Resolved client secret; overrides
            ``settings.client_secret``.
        refresh_coordinator: Shared refresh lock table; a private one is
            created when omitted.
    """

    validated_field = "access_token"

    def __init__(
        self,
        settings: OAuth2Settings,
        token_validator: Optional[TokenValidator] = None,
        token_store: Optional[TokenStore] = None,
        session_id_extractor: Optional[SessionIDExtractor] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
        client_secret: Optional[str] = None,
        refresh_coordinator: Optional[RefreshCoordinator] = None,
    ):
        super().__init__(unauthorized_handler)
        self.settings = settings
        self.token_validator = token_validator
        self.token_store = token_store
        self.session_id_extractor = session_id_extractor
        self.client = TokenClient(
            settings.token_url,
            settings.client_id,
            client_secret if client_secret is not None else settings.client_secret,
            settings.timeout,
        )
        self.refresher = refresh_coordinator or RefreshCoordinator()

    @property
    def scopes(self) -> list[str]:
        return list(self.settings.scopes)

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        if error.status == 401:
            return bearer_challenge(error)
        return super().challenge(environ, error)

    def validate_config(self) -> list[str]:
        errors: list[str] = []
        if not self.settings.client_id:
            errors.append(f"{self.auth_type} requires 'client_id'")
        if not self.client.token_url:
            errors.append(f"{self.auth_type} requires 'token_url'")
        return errors

    # --- helpers for subclasses ---

    def accepts_presented(self, token: str) -> bool:
        """Return ``True`` if a client-presented token passes the validator."""
        return self.token_validator is not None and bool(self.token_validator(token))

    def accepts_stored(self, token: Token) -> bool:
        """Return ``True`` if a stored token passes the validator (if any)."""
        if self.token_validator is None:
            return True
        return bool(self.token_validator(getattr(token, self.validated_field)))

    def presented_token(self, environ: Environ) -> Optional[Token]:
        """Return the ``Authorization: Bearer`` token when it validates."""
        value = extract_bearer_token(environ)
        if value is None or not self.accepts_presented(value):
            return None
        if self.validated_field == "id_token":
            return Token(access_token=value, id_token=value)
        return Token(access_token=value)

    def session_id(self, environ: Environ) -> Optional[str]:
        if self.session_id_extractor is None:
            return None
        return self.session_id_extractor(environ)

    def save_token(self, environ: Environ, token: Token) -> None:
        session_id = self.session_id(environ)
        if self.token_store is not None and session_id:
            self.token_store.save(session_id, token)

    def refresh_stored(self, session_id: str, token: Token, store: TokenStore) -> Token:
        """Refresh *token* through the coordinator, saving the result in *store*.

        Raises:
            TokenExchangeError: If the refresh grant fails.
        """
        return self.refresher.refresh(session_id, token, store, self.client, self.settings.refresh_buffer)

    def stored_token(self, environ: Environ) -> Optional[Token]:
        """Return the session's stored token if it is usable, refreshing it if needed.

        A token inside the refresh buffer with no refresh token is still used
        until it actually expires. A failed refresh counts as no token.
        """
        session_id = self.session_id(environ)
        if self.token_store is None or not session_id:
            return None
        token = self.token_store.load(session_id)
        if token is None:
            return None
        if token.needs_refresh(self.settings.refresh_buffer):
            try:
                token = self.refresh_stored(session_id, token, self.token_store)
            except TokenExchangeError as exc:
                logger.debug("Stored token refresh failed: %s", exc)
                return None
        elif token.is_expired():
            return None
        if not self.accepts_stored(token):
            return None
        return token


class RedirectFlowScheme(OAuth2Scheme):
    """Authorization Code state machine shared with OpenID Connect.

    Args:
        settings: The flow's declarative settings.
        state_store: Holds pending authorizations between redirect and
            callback. Defaults to a :class:`~authgate.auth.stores.MemoryStateStore`
            when the flow has a callback (``default_state_store``).
        **kwargs: Passed to :class:`OAuth2Scheme`.
    """

    response_type = "code"
    default_state_store = True

    def __init__(self, settings: OAuth2Settings, state_store: Optional[StateStore] = None, **kwargs):
        super().__init__(settings, **kwargs)
        if state_store is None and self.default_state_store:
            state_store = MemoryStateStore()
        self.state_store: Optional[StateStore] = state_store

    @property
    def authorization_url(self) -> str:
        return getattr(self.settings, "authorization_url", "")

    @property
    def redirect_url(self) -> str:
        return getattr(self.settings, "redirect_url", "")

    @property
    def pkce_method(self) -> Optional[str]:
        """The PKCE method to use, or ``None`` when PKCE is off."""
        if getattr(self.settings, "pkce", False):
            return getattr(self.settings, "pkce_method", "S256")
        return None

    def validate_config(self) -> list[str]:
        errors = super().validate_config()
        if not self.authorization_url:
            errors.append(f"{self.auth_type} requires 'authorization_url'")
        if not self.redirect_url:
            errors.append(f"{self.auth_type} requires 'redirect_url'")
        return errors

    def authenticate(self, environ: Environ) -> AuthDecision:
        params = query_params(environ)
        if params.get("code") and params.get("state"):
            return self.handle_callback(environ, params["code"], params["state"])

        token = self.presented_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)

        token = self.stored_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)

        return self.start_authorization(environ)

    def handle_callback(self, environ: Environ, code: str, state: str) -> AuthDecision:
        """Redeem an authorization callback.

        Raises:
            StateMismatchError: If *state* was never issued or has expired.
            TokenExchangeError: If the code exchange fails.
        """
        pending = self.state_store.take(state) if self.state_store is not None else None
        if pending is None:
            raise StateMismatchError("Unknown authorization state")
        token = self.client.exchange_code(code, self.redirect_url, pending.code_verifier)
        self.save_token(environ, token)
        environ[RETURN_TO_KEY] = pending.return_to
        logger.debug("Completed authorization callback")
        return AuthDecision.allow(token=token)

    def start_authorization(self, environ: Environ) -> AuthDecision:
        """Persist a new ``state`` and redirect to the authorization endpoint."""
        state = generate_state()
        pending = PendingAuthorization(state=state, return_to=request_target(environ))
        params = {
            "response_type": self.response_type,
            "client_id": self.settings.client_id,
            "redirect_uri": self.redirect_url,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        method = self.pkce_method
        if method is not None:
            verifier, challenge = generate_pkce_pair(method)
            pending.code_verifier = verifier
            params["code_challenge"] = challenge
            params["code_challenge_method"] = method
        if self.state_store is not None:
            self.state_store.put(pending)
        return AuthDecision.redirect(build_url(self.authorization_url, params))
