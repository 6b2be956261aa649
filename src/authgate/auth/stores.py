"""Ready-made state and token store adapters.

All adapters satisfy the protocols in :mod:`authgate.auth.capabilities`:

- :class:`MemoryStateStore` / :class:`MemoryTokenStore` -- in-process,
  thread-safe, lost on restart.
- :class:`DiskStateStore` -- :mod:`diskcache`-backed, shared by worker
  processes on one host.
- :class:`FileTokenStore` -- one JSON file per session under a directory,
  written atomically via :func:`tempfile.NamedTemporaryFile` and
  ``os.replace`` with ``0o600`` permissions so that tokens are never
  world-readable, even momentarily.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import diskcache

from authgate.models import PendingAuthorization, Token

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL = 600.0


class MemoryStateStore:
    """In-memory pending-authorization store with expiry.

    Redirects that are never completed expire after ``ttl``; expired entries
    are swept when new states are stored, at most once per tenth of the TTL.

    Args:
        ttl: Seconds an issued ``state`` stays redeemable.
        clock: Zero-argument callable returning seconds.
    """

    def __init__(self, ttl: float = DEFAULT_STATE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, PendingAuthorization]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def put(self, pending: PendingAuthorization) -> None:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.ttl / 10:
                expired = [
                    state for state, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl
                ]
                for state in expired:
                    del self._entries[state]
                self._last_sweep = now
                if expired:
                    logger.debug("Swept %d expired authorization states", len(expired))
            self._entries[pending.state] = (now, pending)

    def take(self, state: str) -> Optional[PendingAuthorization]:
        with self._lock:
            entry = self._entries.pop(state, None)
        if entry is None:
            return None
        stored_at, pending = entry
        if self._clock() - stored_at >= self.ttl:
            logger.debug("Discarded expired authorization state")
            return None
        return pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DiskStateStore:
    """Pending-authorization store shared between processes.

    Args:
        directory: Cache directory; a ``states/`` subdirectory is used.
        ttl: Seconds an issued ``state`` stays redeemable.
    """

    def __init__(self, directory: str | Path, ttl: float = DEFAULT_STATE_TTL):
        self.ttl = ttl
        self._cache = diskcache.Cache(str(Path(directory) / "states"))

    def put(self, pending: PendingAuthorization) -> None:
        self._cache.set(pending.state, pending.model_dump(mode="json"), expire=self.ttl)

    def take(self, state: str) -> Optional[PendingAuthorization]:
        data = self._cache.pop(state, default=None)
        if data is None:
            return None
        return PendingAuthorization.model_validate(data)

    def close(self) -> None:
        self._cache.close()


class MemoryTokenStore:
    """Thread-safe in-memory token store keyed by session id."""

    def __init__(self) -> None:
        self._tokens: dict[str, Token] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> Optional[Token]:
        with self._lock:
            return self._tokens.get(session_id)

    def save(self, session_id: str, token: Token) -> None:
        with self._lock:
            self._tokens[session_id] = token

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._tokens.pop(session_id, None)


class FileTokenStore:
    """Token store persisting one JSON file per session.

    File names are SHA-256 digests of the session id, so arbitrary cookie
    values never reach the filesystem.

    Args:
        directory: Directory holding the token files; created on demand.

    Example::

        store = FileTokenStore("/var/lib/myapp/tokens")
        store.save("session-1", Token(access_token="tok123"))
        assert store.load("session-1").access_token == "tok123"
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, session_id: str) -> Path:
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.json"

    def save(self, session_id: str, token: Token) -> None:
        """Persist *token* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        path = self.path_for(session_id)
        text = json.dumps(token.model_dump(mode="json"), indent=2) + "\n"
        path.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path: Optional[str] = None
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
            tmp_path = fd.name
            os.chmod(tmp_path, 0o600)
            fd.write(text)
            fd.flush()
            os.fsync(fd.fileno())
            fd.close()
            fd = None
            os.replace(tmp_path, path)
        except BaseException:
            if fd is not None:
                fd.close()
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self, session_id: str) -> Optional[Token]:
        """Load the token for *session_id*.

        Returns:
            The stored :class:`~authgate.models.Token`, or ``None`` if no
            file exists or its content cannot be parsed.
        """
        path = self.path_for(session_id)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Token.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", path, exc)
            return None

    def delete(self, session_id: str) -> None:
        path = self.path_for(session_id)
        if path.is_file():
            path.unlink()
