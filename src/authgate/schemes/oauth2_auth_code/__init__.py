"""OAuth2 Authorization Code grant scheme, with optional PKCE.

See Also:
    :class:`~authgate.schemes.oauth2_auth_code.scheme.AuthorizationCodeScheme`
"""

from authgate.schemes.oauth2_auth_code.scheme import AuthorizationCodeScheme

__all__ = ["AuthorizationCodeScheme"]
