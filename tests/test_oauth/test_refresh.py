"""Tests for per-session refresh coalescing."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from authgate.auth.stores import MemoryTokenStore
from authgate.exceptions import TokenExchangeError
from authgate.models import Token
from authgate.oauth.refresh import RefreshCoordinator
from authgate.oauth.token_client import TokenClient


def _expiring(access_token: str = "old", refresh_token: str = "rt-1") -> Token:
    return Token.from_response({"access_token": access_token, "expires_in": 60, "refresh_token": refresh_token})


def _fresh(access_token: str = "new") -> Token:
    return Token.from_response({"access_token": access_token, "expires_in": 3600, "refresh_token": "rt-2"})


class TestRefreshCoordinator:
    def test_refreshes_and_saves(self) -> None:
        store = MemoryTokenStore()
        current = _expiring()
        store.save("sess", current)
        client = MagicMock(spec=TokenClient)
        client.refresh.return_value = _fresh()

        token = RefreshCoordinator().refresh("sess", current, store, client, buffer=300)

        client.refresh.assert_called_once_with("rt-1")
        assert token.access_token == "new"
        assert store.load("sess").access_token == "new"

    def test_reuses_token_refreshed_elsewhere(self) -> None:
        store = MemoryTokenStore()
        current = _expiring()
        store.save("sess", _fresh("already-new"))
        client = MagicMock(spec=TokenClient)

        token = RefreshCoordinator().refresh("sess", current, store, client, buffer=300)

        client.refresh.assert_not_called()
        assert token.access_token == "already-new"

    def test_failure_propagates_and_releases_lock(self) -> None:
        store = MemoryTokenStore()
        current = _expiring()
        store.save("sess", current)
        client = MagicMock(spec=TokenClient)
        client.refresh.side_effect = TokenExchangeError("boom")
        coordinator = RefreshCoordinator()

        with pytest.raises(TokenExchangeError):
            coordinator.refresh("sess", current, store, client, buffer=300)
        assert len(coordinator) == 0
        assert store.load("sess") is current

    def test_concurrent_requests_refresh_once(self) -> None:
        store = MemoryTokenStore()
        current = _expiring()
        store.save("sess", current)
        started = threading.Event()
        release = threading.Event()
        calls: list[str] = []

        def slow_refresh(refresh_token: str, now=None) -> Token:
            calls.append(refresh_token)
            started.set()
            release.wait(5)
            return _fresh()

        client = MagicMock(spec=TokenClient)
        client.refresh.side_effect = slow_refresh
        coordinator = RefreshCoordinator()
        results: list[Token] = []

        def worker() -> None:
            results.append(coordinator.refresh("sess", current, store, client, buffer=300))

        first = threading.Thread(target=worker)
        first.start()
        assert started.wait(5)
        second = threading.Thread(target=worker)
        second.start()
        release.set()
        first.join(5)
        second.join(5)

        assert calls == ["rt-1"]
        assert [t.access_token for t in results] == ["new", "new"]
        assert len(coordinator) == 0

    def test_distinct_sessions_do_not_share_locks(self) -> None:
        coordinator = RefreshCoordinator()
        with coordinator.hold("a"):
            with coordinator.hold("b"):
                assert len(coordinator) == 2
        assert len(coordinator) == 0
