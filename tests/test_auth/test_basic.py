"""Tests for the basic auth scheme (HTTP Basic)."""

from __future__ import annotations

import base64

import pytest

from authgate.auth.middleware import AuthMiddleware
from authgate.exceptions import InvalidCredentialError, MalformedCredentialError, MissingCredentialError
from authgate.models import BasicSettings
from authgate.schemes.basic import BasicScheme, parse_basic_credentials


def _check(username: str, password: str) -> bool:
    return (username, password) == ("alice", "s3cret")


# -------------------------------------------------------------------------
# Header parsing
# -------------------------------------------------------------------------


class TestParseBasicCredentials:
    def test_valid_pair(self, basic_header) -> None:
        assert parse_basic_credentials(basic_header("alice", "s3cret")) == ("alice", "s3cret")

    def test_password_may_contain_colons(self, basic_header) -> None:
        assert parse_basic_credentials(basic_header("bob", "a:b:c")) == ("bob", "a:b:c")

    def test_missing_header(self) -> None:
        with pytest.raises(MissingCredentialError):
            parse_basic_credentials(None)

    def test_other_scheme_counts_as_missing(self) -> None:
        with pytest.raises(MissingCredentialError):
            parse_basic_credentials("Bearer abc")

    def test_invalid_base64(self) -> None:
        with pytest.raises(MalformedCredentialError):
            parse_basic_credentials("Basic !!!not-base64!!!")

    def test_missing_colon(self) -> None:
        encoded = base64.b64encode(b"justauser").decode("ascii")
        with pytest.raises(MalformedCredentialError):
            parse_basic_credentials(f"Basic {encoded}")


# -------------------------------------------------------------------------
# Scheme behaviour
# -------------------------------------------------------------------------


class TestBasicScheme:
    def test_auth_type(self) -> None:
        assert BasicScheme(_check).auth_type == "basic"

    def test_accepts_valid_credentials(self, make_environ, basic_header) -> None:
        scheme = BasicScheme(_check)
        decision = scheme.authenticate(make_environ(headers={"Authorization": basic_header("alice", "s3cret")}))
        assert decision.proceed
        assert decision.user == "alice"

    def test_rejects_wrong_password(self, make_environ, basic_header) -> None:
        scheme = BasicScheme(_check)
        with pytest.raises(InvalidCredentialError):
            scheme.authenticate(make_environ(headers={"Authorization": basic_header("alice", "nope")}))


class TestBasicMiddleware:
    def test_missing_header_challenges_default_realm(self, make_environ, call_app, downstream) -> None:
        app = AuthMiddleware(downstream, BasicScheme(_check))
        result = call_app(app, make_environ())
        assert result.status == 401
        assert result.header("WWW-Authenticate") == 'Basic realm="Restricted"'
        assert not downstream.called

    def test_custom_realm(self, make_environ, call_app, downstream) -> None:
        app = AuthMiddleware(downstream, BasicScheme(_check, BasicSettings(realm="admin")))
        result = call_app(app, make_environ())
        assert result.header("WWW-Authenticate") == 'Basic realm="admin"'

    def test_valid_credentials_set_remote_user(self, make_environ, call_app, downstream, basic_header) -> None:
        app = AuthMiddleware(downstream, BasicScheme(_check))
        result = call_app(app, make_environ(headers={"Authorization": basic_header("alice", "s3cret")}))
        assert result.status == 200
        assert downstream.environ["REMOTE_USER"] == "alice"
        assert downstream.environ["AUTH_TYPE"] == "basic"
