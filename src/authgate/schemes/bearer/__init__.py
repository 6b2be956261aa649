"""HTTP Bearer token authentication scheme (:rfc:`6750`).

See Also:
    :class:`~authgate.schemes.bearer.scheme.BearerScheme`
"""

from authgate.schemes.bearer.scheme import BEARER_PREFIX, BearerScheme, extract_bearer_token

__all__ = ["BEARER_PREFIX", "BearerScheme", "extract_bearer_token"]
