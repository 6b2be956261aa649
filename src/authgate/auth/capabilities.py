"""Capability interfaces that schemes depend on.

Schemes never know where passwords, tokens, or pending authorizations live.
They talk to the small protocols below, which callers implement (or satisfy
with plain functions, for the single-method validator protocols).
Ready-made store adapters live in :mod:`authgate.auth.stores`.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

from authgate.models import PendingAuthorization, Token
from authgate.wsgi import Environ, get_cookie


class PasswordValidator(Protocol):
    """Checks a Basic username/password pair."""

    def __call__(self, username: str, password: str) -> bool: ...


class PasswordLookup(Protocol):
    """Returns the clear-text password for a Digest user, or ``None`` if unknown."""

    def __call__(self, username: str, realm: str) -> Optional[str]: ...


class TokenValidator(Protocol):
    """Checks a bearer, access, or ID token string."""

    def __call__(self, token: str) -> bool: ...


class KeyValidator(Protocol):
    """Checks an API key."""

    def __call__(self, key: str) -> bool: ...


class CertificateValidator(Protocol):
    """Checks a parsed client certificate (``cryptography.x509.Certificate``)."""

    def __call__(self, certificate: Any) -> bool: ...


class SessionIDExtractor(Protocol):
    """Derives the key under which a request's token is stored."""

    def __call__(self, environ: Environ) -> Optional[str]: ...


@runtime_checkable
class StateStore(Protocol):
    """Holds pending authorization redirects keyed by their ``state`` value."""

    def put(self, pending: PendingAuthorization) -> None:
        """Remember *pending* until it is taken or expires."""
        ...

    def take(self, state: str) -> Optional[PendingAuthorization]:
        """Remove and return the entry for *state*, or ``None`` if unknown."""
        ...


@runtime_checkable
class TokenStore(Protocol):
    """Holds tokens keyed by a caller-defined session identifier."""

    def load(self, session_id: str) -> Optional[Token]: ...

    def save(self, session_id: str, token: Token) -> None: ...

    def delete(self, session_id: str) -> None: ...


def cookie_session_extractor(cookie_name: str = "session_id") -> Callable[[Environ], Optional[str]]:
    """Return a :class:`SessionIDExtractor` that reads a cookie."""

    def extract(environ: Environ) -> Optional[str]:
        return get_cookie(environ, cookie_name)

    return extract


def constant_session_extractor(session_id: str) -> Callable[[Environ], Optional[str]]:
    """Return a :class:`SessionIDExtractor` that always yields *session_id*.

    Suits service-to-service gateways where one client-credentials token is
    shared by every request.
    """

    def extract(environ: Environ) -> Optional[str]:
        return session_id

    return extract
