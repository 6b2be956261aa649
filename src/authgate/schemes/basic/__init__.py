"""HTTP Basic authentication scheme.

Implements the ``basic`` auth type: a ``username:password`` pair sent
Base64-encoded in an ``Authorization: Basic`` header per :rfc:`7617`.

See Also:
    :class:`~authgate.schemes.basic.scheme.BasicScheme`
    :mod:`authgate.auth.base` for the scheme interface contract.
"""

from authgate.schemes.basic.scheme import BasicScheme, parse_basic_credentials

__all__ = ["BasicScheme", "parse_basic_credentials"]
