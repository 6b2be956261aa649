"""HTTP Digest access authentication scheme (:rfc:`2617`, MD5).

See Also:
    :class:`~authgate.schemes.digest.scheme.DigestScheme`
    :mod:`authgate.auth.nonce` for nonce bookkeeping.
"""

from authgate.schemes.digest.scheme import (
    DigestScheme,
    build_authorization,
    digest_response,
    parse_digest_params,
)

__all__ = ["DigestScheme", "build_authorization", "digest_response", "parse_digest_params"]
