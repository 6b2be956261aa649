"""OAuth2 Authorization Code grant scheme.

Unauthenticated browser requests are redirected to ``authorization_url``
with a fresh ``state``. The provider sends the user back to
``redirect_url`` with ``code`` and ``state``; the state is checked against
the state store (an unknown state is answered with 400), the code is
exchanged at ``token_url``, and the token is stored under the request's
session id. Later requests are served from the token store, refreshing
silently once the token enters the refresh buffer.

With ``pkce`` enabled, the redirect carries an :rfc:`7636` code challenge
and the exchange sends the matching ``code_verifier``.

See Also:
    :class:`authgate.oauth.flow.RedirectFlowScheme` for the state machine.
"""

from __future__ import annotations

from typing import Optional

from authgate.auth.capabilities import SessionIDExtractor, StateStore, TokenStore, TokenValidator
from authgate.models import AuthCodeSettings
from authgate.oauth.flow import RedirectFlowScheme
from authgate.oauth.refresh import RefreshCoordinator
from authgate.wsgi import WSGIApp


class AuthorizationCodeScheme(RedirectFlowScheme):
    """Authenticate via the OAuth2 Authorization Code grant."""

    def __init__(
        self,
        settings: AuthCodeSettings,
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

    @property
    def auth_type(self) -> str:
        return "oauth2_auth_code"
