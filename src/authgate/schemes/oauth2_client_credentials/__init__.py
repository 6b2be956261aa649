"""OAuth2 Client Credentials grant scheme.

See Also:
    :class:`~authgate.schemes.oauth2_client_credentials.scheme.ClientCredentialsScheme`
"""

from authgate.schemes.oauth2_client_credentials.scheme import ClientCredentialsScheme

__all__ = ["ClientCredentialsScheme"]
