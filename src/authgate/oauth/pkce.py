"""PKCE (:rfc:`7636`) verifier and challenge generation."""

from __future__ import annotations

import base64
import hashlib
import secrets


def code_challenge(code_verifier: str, method: str = "S256") -> str:
    """Derive the ``code_challenge`` for *code_verifier*.

    Args:
        code_verifier: The secret verifier kept server-side.
        method: ``"S256"`` (base64url SHA-256, unpadded) or ``"plain"``.

    Raises:
        ValueError: If *method* is not supported.
    """
    if method == "plain":
        return code_verifier
    if method != "S256":
        raise ValueError(f"Unsupported PKCE method: {method}")
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(method: str = "S256") -> tuple[str, str]:
    """Generate a PKCE code_verifier and its code_challenge.

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    return code_verifier, code_challenge(code_verifier, method)
