"""Mutual TLS client certificate authentication scheme.

TLS is terminated elsewhere (the WSGI server or a fronting proxy). This
scheme only reads the peer certificate chain that the handshake produced,
looking in two places:

1. ``environ["authgate.peer_certificates"]`` -- a list of
   :class:`cryptography.x509.Certificate` objects, DER ``bytes``, or PEM
   ``str``, placed there by a server integration.
2. ``SSL_CLIENT_CERT`` (PEM) plus ``SSL_CLIENT_CERT_CHAIN_0``,
   ``SSL_CLIENT_CERT_CHAIN_1``, ... as exported by mod_ssl/mod_wsgi and
   most TLS-terminating proxies.

The first (leaf) certificate is passed to the
:class:`~authgate.auth.capabilities.CertificateValidator`.
"""

from __future__ import annotations

from typing import Any, Optional

from cryptography import x509

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.capabilities import CertificateValidator
from authgate.exceptions import InvalidCredentialError, MalformedCredentialError, MissingCredentialError
from authgate.models import MutualTLSSettings
from authgate.wsgi import PEER_CERTIFICATES_KEY, Environ, WSGIApp


def _load_certificate(value: Any) -> x509.Certificate:
    if isinstance(value, x509.Certificate):
        return value
    try:
        if isinstance(value, bytes):
            return x509.load_der_x509_certificate(value)
        if isinstance(value, str):
            return x509.load_pem_x509_certificate(value.encode("ascii"))
    except ValueError as exc:
        raise MalformedCredentialError(f"Unparsable peer certificate: {exc}") from exc
    raise MalformedCredentialError(f"Unsupported peer certificate type: {type(value).__name__}")


def peer_certificates(environ: Environ) -> list[x509.Certificate]:
    """Return the peer certificate chain, leaf first; empty if none was presented.

    Raises:
        MalformedCredentialError: If a certificate cannot be parsed.
    """
    raw = environ.get(PEER_CERTIFICATES_KEY)
    if raw:
        return [_load_certificate(item) for item in raw]
    leaf = environ.get("SSL_CLIENT_CERT")
    if not leaf:
        return []
    chain = [_load_certificate(leaf)]
    index = 0
    while f"SSL_CLIENT_CERT_CHAIN_{index}" in environ:
        chain.append(_load_certificate(environ[f"SSL_CLIENT_CERT_CHAIN_{index}"]))
        index += 1
    return chain


class MutualTLSScheme(AuthScheme):
    """Authenticate via the client certificate of a mutual TLS handshake.

    On success ``REMOTE_USER`` is the leaf certificate's subject in
    :rfc:`4514` form.

    Args:
        validator: Called with the leaf :class:`cryptography.x509.Certificate`.
        settings: Declarative settings (only ``name`` is meaningful).
        unauthorized_handler: Optional WSGI app replacing the default 401.
    """

    def __init__(
        self,
        validator: CertificateValidator,
        settings: Optional[MutualTLSSettings] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
    ):
        super().__init__(unauthorized_handler)
        self.validator = validator
        self.settings = settings or MutualTLSSettings()

    @property
    def auth_type(self) -> str:
        return "mutual_tls"

    def authenticate(self, environ: Environ) -> AuthDecision:
        chain = peer_certificates(environ)
        if not chain:
            raise MissingCredentialError("No client certificate presented")
        leaf = chain[0]
        if not self.validator(leaf):
            raise InvalidCredentialError("Client certificate rejected")
        return AuthDecision.allow(user=leaf.subject.rfc4514_string())
