"""OpenID Connect scheme.

See Also:
    :class:`~authgate.schemes.openid_connect.scheme.OpenIDConnectScheme`
"""

from authgate.schemes.openid_connect.scheme import OpenIDConnectScheme, discover

__all__ = ["OpenIDConnectScheme", "discover"]
