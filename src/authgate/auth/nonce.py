"""Registries of issued Digest nonces.

A nonce is live while its age is below the store's TTL. Expired entries are
removed lazily, when a lookup finds them, and swept in bulk when new nonces
are recorded (at most once per tenth of the TTL). Each Digest scheme owns one store
unless a store is passed in explicitly, so two schemes can share nonces only
on purpose.

Two implementations are provided:

- :class:`NonceStore` -- a mutex-guarded in-memory map, suitable for a
  single process with any number of threads. The clock is injectable for
  deterministic tests.
- :class:`DiskNonceStore` -- backed by :class:`diskcache.Cache`, so that
  nonces issued by one worker process are honoured by the others.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import diskcache

logger = logging.getLogger(__name__)

DEFAULT_NONCE_TTL = 1800.0


def new_nonce() -> str:
    """Return 16 cryptographically random bytes as lowercase hex."""
    return secrets.token_hex(16)


class NonceStore:
    """Thread-safe in-memory nonce registry.

    Args:
        ttl: Seconds a nonce stays live after issue.
        clock: Zero-argument callable returning seconds; defaults to
            :func:`time.monotonic`.

    Example::

        store = NonceStore(ttl=60)
        nonce = store.issue()
        assert store.is_valid(nonce)
    """

    def __init__(self, ttl: float = DEFAULT_NONCE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._nonces: dict[str, float] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def issue(self) -> str:
        """Generate, record, and return a fresh nonce."""
        value = new_nonce()
        self.add(value)
        return value

    def add(self, value: str, issued_at: Optional[float] = None) -> None:
        """Record *value* as issued at *issued_at* (default: now)."""
        now = self._clock()
        stamp = now if issued_at is None else issued_at
        with self._lock:
            if now - self._last_sweep >= self.ttl / 10:
                self._sweep(now)
            self._nonces[value] = stamp

    def is_valid(self, value: str) -> bool:
        """Return ``True`` if *value* was issued and is younger than the TTL.

        An expired entry is deleted as a side effect.
        """
        with self._lock:
            issued_at = self._nonces.get(value)
            if issued_at is None:
                return False
            if self._clock() - issued_at >= self.ttl:
                del self._nonces[value]
                logger.debug("Evicted expired nonce")
                return False
            return True

    def discard(self, value: str) -> None:
        with self._lock:
            self._nonces.pop(value, None)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        expired = [value for value, issued_at in self._nonces.items() if now - issued_at >= self.ttl]
        for value in expired:
            del self._nonces[value]
        self._last_sweep = now
        if expired:
            logger.debug("Swept %d expired nonces", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)


class DiskNonceStore:
    """Nonce registry shared between processes through :mod:`diskcache`.

    Entries carry a diskcache expiry equal to the TTL, so the cache also
    culls them on its own. Ages are measured with :func:`time.time`
    because monotonic clocks are not comparable across processes.

    Args:
        directory: Cache directory; a ``nonces/`` subdirectory is used.
        ttl: Seconds a nonce stays live after issue.
    """

    def __init__(self, directory: str | Path, ttl: float = DEFAULT_NONCE_TTL):
        self.ttl = ttl
        self._cache = diskcache.Cache(str(Path(directory) / "nonces"))

    def issue(self) -> str:
        value = new_nonce()
        self.add(value)
        return value

    def add(self, value: str, issued_at: Optional[float] = None) -> None:
        stamp = time.time() if issued_at is None else issued_at
        self._cache.set(value, stamp, expire=self.ttl)

    def is_valid(self, value: str) -> bool:
        issued_at = self._cache.get(value)
        if issued_at is None:
            return False
        if time.time() - issued_at >= self.ttl:
            self._cache.delete(value)
            return False
        return True

    def discard(self, value: str) -> None:
        self._cache.delete(value)

    def __len__(self) -> int:
        return len(self._cache)

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()
