"""OAuth2 Implicit grant scheme.

The provider returns the access token in the URL fragment, which never
reaches the server; client-side script moves it into an ``access_token``
query parameter (or sends it as a bearer header). A valid query token is
removed from ``QUERY_STRING`` before the downstream application runs, so
it does not leak into logs or links. Anything else is redirected to the
authorization endpoint with ``response_type=token``; its ``state`` is
persisted only when a state store is supplied.
"""

from __future__ import annotations

from typing import Optional

from authgate.auth.base import AuthDecision
from authgate.auth.capabilities import StateStore, TokenValidator
from authgate.models import ImplicitSettings, Token
from authgate.oauth.flow import RedirectFlowScheme
from authgate.wsgi import Environ, WSGIApp, query_params, remove_query_param

ACCESS_TOKEN_PARAM = "access_token"


class ImplicitScheme(RedirectFlowScheme):
    """Authenticate via the OAuth2 Implicit grant.

    The implicit grant has no token endpoint call, so ``token_url`` may be
    left empty.
    """

    response_type = "token"
    default_state_store = False

    def __init__(
        self,
        settings: ImplicitSettings,
        token_validator: Optional[TokenValidator] = None,
        state_store: Optional[StateStore] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(
            settings,
            state_store=state_store,
            token_validator=token_validator,
            unauthorized_handler=unauthorized_handler,
        )

    @property
    def auth_type(self) -> str:
        return "oauth2_implicit"

    def validate_config(self) -> list[str]:
        errors: list[str] = []
        if not self.settings.client_id:
            errors.append("oauth2_implicit requires 'client_id'")
        if not self.authorization_url:
            errors.append("oauth2_implicit requires 'authorization_url'")
        if not self.redirect_url:
            errors.append("oauth2_implicit requires 'redirect_url'")
        if self.token_validator is None:
            errors.append("oauth2_implicit requires a token validator")
        return errors

    def authenticate(self, environ: Environ) -> AuthDecision:
        value = query_params(environ).get(ACCESS_TOKEN_PARAM)
        if value and self.accepts_presented(value):
            remove_query_param(environ, ACCESS_TOKEN_PARAM)
            return AuthDecision.allow(token=Token(access_token=value))

        token = self.presented_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)

        return self.start_authorization(environ)
