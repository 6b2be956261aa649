"""authgate -- Pluggable HTTP authentication middleware for WSGI applications.

This package puts one or more authentication *schemes* in front of an
arbitrary WSGI application. Each scheme inspects the request, then either
lets it through (optionally attaching an OAuth2/OIDC token to the WSGI
environ) or answers it directly with a 401/403 challenge, a 400 for a
forged callback, or a 302 redirect to an authorization endpoint.

Typical usage::

    from authgate import AuthMiddleware, RequireAllScopes
    from authgate.schemes.bearer import BearerScheme

    app = RequireAllScopes(app, "read")
    app = AuthMiddleware(app, BearerScheme(validator=check_token))

Modules:
    app: Typer operator CLI and entry point.
    models: Pydantic models for tokens, device codes, and scheme settings.
    config: JSON/YAML configuration loading and secret resolution.
    exceptions: Exception hierarchy with HTTP status mapping.
    status_codes: HTTP status constants used by the middleware.
    wsgi: Helpers for reading requests from and writing responses to WSGI.
"""

from authgate.auth.middleware import AuthMiddleware, chain
from authgate.auth.scopes import RequireAllScopes, RequireAnyScopes, has_all_scopes, has_any_scopes
from authgate.models import DeviceCode, Token
from authgate.wsgi import get_token

__version__ = "0.1.0"

__all__ = [
    "AuthMiddleware",
    "DeviceCode",
    "RequireAllScopes",
    "RequireAnyScopes",
    "Token",
    "chain",
    "get_token",
    "has_all_scopes",
    "has_any_scopes",
]
