"""Mutual TLS client certificate authentication scheme.

See Also:
    :class:`~authgate.schemes.mutual_tls.scheme.MutualTLSScheme`
"""

from authgate.schemes.mutual_tls.scheme import MutualTLSScheme, peer_certificates

__all__ = ["MutualTLSScheme", "peer_certificates"]
