"""Per-session coalescing of token refreshes.

When several requests sharing one session find its token inside the refresh
buffer at the same time, only the first performs the ``refresh_token``
grant. The others wait on the session's lock, then pick up the token the
first one saved.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from authgate.auth.capabilities import TokenStore
from authgate.models import Token
from authgate.oauth.token_client import TokenClient

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Serializes refreshes per session key.

    Locks are reference counted and dropped once no request holds or waits
    on them, so the lock table does not grow with the number of sessions.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for *key* for the duration of the block."""
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        lock: threading.Lock = entry[0]
        try:
            with lock:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def refresh(
        self,
        session_id: str,
        current: Token,
        token_store: TokenStore,
        client: TokenClient,
        buffer: float,
    ) -> Token:
        """Refresh *current* unless a concurrent request already did.

        Returns:
            The refreshed token, already saved to *token_store*.

        Raises:
            TokenExchangeError: If the refresh grant fails.
        """
        with self.hold(session_id):
            latest: Optional[Token] = token_store.load(session_id)
            if (
                latest is not None
                and latest.access_token != current.access_token
                and not latest.is_expired(buffer)
            ):
                logger.debug("Reusing token refreshed by a concurrent request")
                return latest
            source = latest if latest is not None and latest.refresh_token else current
            token = client.refresh(source.refresh_token)
            token_store.save(session_id, token)
            logger.debug("Refreshed token for session")
            return token

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
