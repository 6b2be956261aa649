"""API key authentication scheme.

The key is read from a header, query parameter, or cookie and checked by a
caller-supplied validator.

See Also:
    :class:`~authgate.schemes.api_key.scheme.ApiKeyScheme`
"""

from authgate.schemes.api_key.scheme import ApiKeyScheme

__all__ = ["ApiKeyScheme"]
