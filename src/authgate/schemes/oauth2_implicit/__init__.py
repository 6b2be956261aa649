"""OAuth2 Implicit grant scheme.

See Also:
    :class:`~authgate.schemes.oauth2_implicit.scheme.ImplicitScheme`
"""

from authgate.schemes.oauth2_implicit.scheme import ImplicitScheme

__all__ = ["ImplicitScheme"]
