"""Tests for the state and token store adapters."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from authgate.auth.capabilities import (
    StateStore,
    TokenStore,
    constant_session_extractor,
    cookie_session_extractor,
)
from authgate.auth.stores import DiskStateStore, FileTokenStore, MemoryStateStore, MemoryTokenStore
from authgate.models import PendingAuthorization, Token


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestProtocols:
    def test_adapters_satisfy_protocols(self, tmp_path: Path) -> None:
        assert isinstance(MemoryStateStore(), StateStore)
        assert isinstance(MemoryTokenStore(), TokenStore)
        assert isinstance(FileTokenStore(tmp_path), TokenStore)


class TestMemoryStateStore:
    def test_take_once(self) -> None:
        store = MemoryStateStore()
        store.put(PendingAuthorization(state="s1", return_to="/docs"))
        pending = store.take("s1")
        assert pending is not None
        assert pending.return_to == "/docs"
        assert store.take("s1") is None

    def test_unknown(self) -> None:
        assert MemoryStateStore().take("nope") is None

    def test_expired(self) -> None:
        clock = FakeClock()
        store = MemoryStateStore(ttl=10, clock=clock)
        store.put(PendingAuthorization(state="s1"))
        clock.now = 10.0
        assert store.take("s1") is None
        assert len(store) == 0

    def test_abandoned_states_swept_on_put(self) -> None:
        clock = FakeClock()
        store = MemoryStateStore(ttl=60, clock=clock)
        for index in range(500):
            store.put(PendingAuthorization(state=f"abandoned-{index}"))
        clock.now = 10_000.0
        store.put(PendingAuthorization(state="fresh"))
        assert len(store) == 1
        assert store.take("fresh") is not None

    def test_sweep_keeps_live_states(self) -> None:
        clock = FakeClock()
        store = MemoryStateStore(ttl=60, clock=clock)
        store.put(PendingAuthorization(state="old"))
        clock.now = 30.0
        store.put(PendingAuthorization(state="young"))
        clock.now = 70.0
        store.put(PendingAuthorization(state="new"))
        assert len(store) == 2
        assert store.take("young") is not None


class TestDiskStateStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = DiskStateStore(tmp_path)
        try:
            store.put(PendingAuthorization(state="s1", return_to="/x", code_verifier="v"))
            pending = store.take("s1")
            assert pending is not None
            assert pending.code_verifier == "v"
            assert store.take("s1") is None
        finally:
            store.close()


class TestMemoryTokenStore:
    def test_save_load_delete(self) -> None:
        store = MemoryTokenStore()
        store.save("sess", Token(access_token="a"))
        assert store.load("sess").access_token == "a"
        store.delete("sess")
        assert store.load("sess") is None
        store.delete("sess")


class TestFileTokenStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path / "tokens")
        token = Token.from_response({"access_token": "a", "expires_in": 60, "scope": "read"})
        store.save("sess", token)
        loaded = store.load("sess")
        assert loaded is not None
        assert loaded.model_dump() == token.model_dump()

    def test_filename_is_hashed(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path)
        store.save("../../etc/passwd", Token(access_token="a"))
        files = list(tmp_path.iterdir())
        assert len(files) == 1
        assert files[0].name.endswith(".json")
        assert "passwd" not in files[0].name

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_permissions(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path)
        store.save("sess", Token(access_token="a"))
        mode = stat.S_IMODE(os.stat(store.path_for("sess")).st_mode)
        assert mode == 0o600

    def test_missing(self, tmp_path: Path) -> None:
        assert FileTokenStore(tmp_path).load("nobody") is None

    def test_corrupt_file_ignored(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path)
        store.path_for("sess").write_text("{not json", encoding="utf-8")
        assert store.load("sess") is None

    def test_delete(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path)
        store.save("sess", Token(access_token="a"))
        store.delete("sess")
        assert store.load("sess") is None
        store.delete("sess")

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = FileTokenStore(tmp_path)
        store.save("sess", Token(access_token="a"))
        store.save("sess", Token(access_token="b"))
        assert [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")] == []
        assert store.load("sess").access_token == "b"


class TestSessionExtractors:
    def test_cookie(self, make_environ) -> None:
        extract = cookie_session_extractor("sid")
        assert extract(make_environ(headers={"Cookie": "sid=abc; other=1"})) == "abc"
        assert extract(make_environ()) is None

    def test_constant(self, make_environ) -> None:
        assert constant_session_extractor("svc")(make_environ()) == "svc"
