"""Tests for the oauth2_auth_code scheme (Authorization Code grant)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from authgate.auth.capabilities import cookie_session_extractor
from authgate.auth.middleware import AuthMiddleware
from authgate.auth.stores import MemoryStateStore, MemoryTokenStore
from authgate.models import AuthCodeSettings, PendingAuthorization, Token
from authgate.oauth.flow import RETURN_TO_KEY
from authgate.oauth.pkce import code_challenge
from authgate.schemes.oauth2_auth_code import AuthorizationCodeScheme
from authgate.wsgi import TOKEN_KEY, Response

POST = "authgate.oauth.token_client.httpx.post"
SESSION_COOKIE = {"Cookie": "session_id=sess-1"}


def _make_settings(**kwargs: object) -> AuthCodeSettings:
    defaults: dict[str, object] = {
        "client_id": "web-app",
        "client_secret": "web-secret",
        "token_url": "https://idp.example.com/token",
        "authorization_url": "https://idp.example.com/authorize",
        "redirect_url": "https://app.example.com/callback",
        "scopes": ["read", "write"],
    }
    defaults.update(kwargs)
    return AuthCodeSettings(**defaults)  # type: ignore[arg-type]


def _mock_httpx_post(response_data: dict[str, object] | None = None, status_code: int = 200) -> MagicMock:
    if response_data is None:
        response_data = {"access_token": "issued-token", "expires_in": 3600, "refresh_token": "rt-1"}
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = response_data
    return mock_response


def _location_params(location: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(location).query).items()}


@pytest.fixture()
def state_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture()
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


def _scheme(state_store, token_store, validator=None, **settings: object) -> AuthorizationCodeScheme:
    return AuthorizationCodeScheme(
        _make_settings(**settings),
        token_validator=validator,
        state_store=state_store,
        token_store=token_store,
        session_id_extractor=cookie_session_extractor(),
    )


# -------------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------------


class TestValidateConfig:
    def test_valid(self, state_store, token_store) -> None:
        assert _scheme(state_store, token_store).validate_config() == []

    def test_all_missing(self) -> None:
        errors = AuthorizationCodeScheme(AuthCodeSettings()).validate_config()
        for name in ("client_id", "token_url", "authorization_url", "redirect_url"):
            assert any(name in e for e in errors)

    def test_auth_type(self, state_store, token_store) -> None:
        assert _scheme(state_store, token_store).auth_type == "oauth2_auth_code"


# -------------------------------------------------------------------------
# Redirect
# -------------------------------------------------------------------------


class TestRedirect:
    def test_unauthenticated_redirects(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        result = call_app(app, make_environ("/reports", query="page=2"))

        assert result.status == 302
        location = result.header("Location")
        assert location.startswith("https://idp.example.com/authorize?")
        params = _location_params(location)
        assert params["response_type"] == "code"
        assert params["client_id"] == "web-app"
        assert params["redirect_uri"] == "https://app.example.com/callback"
        assert params["scope"] == "read write"
        assert "code_challenge" not in params
        pending = state_store.take(params["state"])
        assert pending is not None
        assert pending.return_to == "/reports?page=2"
        assert not downstream.called

    def test_existing_query_in_authorization_url(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store, authorization_url="https://idp.example.com/authorize?tenant=x")
        decision = scheme.authenticate(make_environ())
        assert decision.response.header("Location").startswith("https://idp.example.com/authorize?tenant=x&")

    def test_pkce_challenge(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store, pkce=True)
        params = _location_params(scheme.authenticate(make_environ()).response.header("Location"))
        assert params["code_challenge_method"] == "S256"
        pending = state_store.take(params["state"])
        assert params["code_challenge"] == code_challenge(pending.code_verifier)

    def test_each_redirect_gets_new_state(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store)
        first = _location_params(scheme.authenticate(make_environ()).response.header("Location"))["state"]
        second = _location_params(scheme.authenticate(make_environ()).response.header("Location"))["state"]
        assert first != second
        assert len(state_store) == 2


# -------------------------------------------------------------------------
# Callback
# -------------------------------------------------------------------------


class TestCallback:
    def test_successful_exchange(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        state_store.put(PendingAuthorization(state="st-1", return_to="/reports"))
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        environ = make_environ("/callback", query="code=abc&state=st-1", headers=SESSION_COOKIE)

        with patch(POST, return_value=_mock_httpx_post()) as mock_post:
            result = call_app(app, environ)

        assert result.status == 200
        data = mock_post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "abc"
        assert data["redirect_uri"] == "https://app.example.com/callback"
        assert data["client_secret"] == "web-secret"
        assert downstream.environ[TOKEN_KEY].access_token == "issued-token"
        assert downstream.environ[RETURN_TO_KEY] == "/reports"
        assert token_store.load("sess-1").access_token == "issued-token"

    def test_pkce_verifier_sent(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store, pkce=True)
        state_store.put(PendingAuthorization(state="st-1", code_verifier="the-verifier"))
        with patch(POST, return_value=_mock_httpx_post()) as mock_post:
            scheme.authenticate(make_environ("/callback", query="code=abc&state=st-1"))
        assert mock_post.call_args.kwargs["data"]["code_verifier"] == "the-verifier"

    def test_unknown_state_is_400(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        app = AuthMiddleware(
            downstream,
            _scheme(state_store, token_store),
            unauthorized_handler=Response(401, body="custom"),
        )
        with patch(POST) as mock_post:
            result = call_app(app, make_environ("/callback", query="code=abc&state=forged"))
        assert result.status == 400
        assert result.body == "Invalid state"
        mock_post.assert_not_called()

    @pytest.mark.parametrize("query", ["code=&state=st-1", "code=abc&state="])
    def test_blank_code_or_state_is_not_a_callback(
        self, make_environ, call_app, downstream, state_store, token_store, query
    ) -> None:
        state_store.put(PendingAuthorization(state="st-1"))
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        with patch(POST) as mock_post:
            result = call_app(app, make_environ("/callback", query=query))
        assert result.status == 302
        mock_post.assert_not_called()
        assert state_store.take("st-1") is not None

    def test_state_is_single_use(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        state_store.put(PendingAuthorization(state="st-1"))
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        with patch(POST, return_value=_mock_httpx_post()):
            assert call_app(app, make_environ("/callback", query="code=abc&state=st-1")).status == 200
            assert call_app(app, make_environ("/callback", query="code=abc&state=st-1")).status == 400

    def test_exchange_failure_is_401(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        state_store.put(PendingAuthorization(state="st-1"))
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        with patch(POST, return_value=_mock_httpx_post({"error": "invalid_grant"}, 400)):
            result = call_app(app, make_environ("/callback", query="code=abc&state=st-1"))
        assert result.status == 401
        assert result.header("WWW-Authenticate") == "Bearer"
        assert not downstream.called

    def test_exchange_network_error_is_401(self, make_environ, call_app, downstream, state_store, token_store) -> None:
        state_store.put(PendingAuthorization(state="st-1"))
        app = AuthMiddleware(downstream, _scheme(state_store, token_store))
        with patch(POST, side_effect=httpx.ConnectError("down")):
            result = call_app(app, make_environ("/callback", query="code=abc&state=st-1"))
        assert result.status == 401


# -------------------------------------------------------------------------
# Presented and stored tokens
# -------------------------------------------------------------------------


class TestTokens:
    def test_valid_bearer_token_proceeds(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store, validator=lambda t: t == "good")
        decision = scheme.authenticate(make_environ(headers={"Authorization": "Bearer good"}))
        assert decision.proceed
        assert decision.token.access_token == "good"

    def test_bearer_without_validator_not_trusted(self, make_environ, state_store, token_store) -> None:
        scheme = _scheme(state_store, token_store)
        decision = scheme.authenticate(make_environ(headers={"Authorization": "Bearer anything"}))
        assert decision.response.status == 302

    def test_stored_token_used(self, make_environ, state_store, token_store) -> None:
        token_store.save("sess-1", Token.from_response({"access_token": "cached", "expires_in": 3600}))
        decision = _scheme(state_store, token_store).authenticate(make_environ(headers=SESSION_COOKIE))
        assert decision.token.access_token == "cached"

    def test_stored_token_checked_by_validator(self, make_environ, state_store, token_store) -> None:
        token_store.save("sess-1", Token(access_token="revoked"))
        scheme = _scheme(state_store, token_store, validator=lambda t: t != "revoked")
        assert scheme.authenticate(make_environ(headers=SESSION_COOKIE)).response.status == 302

    def test_stored_token_refreshed(self, make_environ, state_store, token_store) -> None:
        token_store.save(
            "sess-1", Token.from_response({"access_token": "old", "expires_in": 60, "refresh_token": "rt-1"})
        )
        scheme = _scheme(state_store, token_store)
        body = {"access_token": "refreshed", "expires_in": 3600}
        with patch(POST, return_value=_mock_httpx_post(body)) as mock_post:
            decision = scheme.authenticate(make_environ(headers=SESSION_COOKIE))
        assert mock_post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
        assert decision.token.access_token == "refreshed"
        assert token_store.load("sess-1").access_token == "refreshed"
        assert token_store.load("sess-1").refresh_token == "rt-1"

    def test_failed_refresh_redirects(self, make_environ, state_store, token_store) -> None:
        token_store.save(
            "sess-1", Token.from_response({"access_token": "old", "expires_in": 60, "refresh_token": "rt-1"})
        )
        with patch(POST, return_value=_mock_httpx_post({"error": "invalid_grant"}, 400)):
            decision = _scheme(state_store, token_store).authenticate(make_environ(headers=SESSION_COOKIE))
        assert decision.response.status == 302

    def test_inside_buffer_without_refresh_token_still_used(self, make_environ, state_store, token_store) -> None:
        token_store.save("sess-1", Token.from_response({"access_token": "short", "expires_in": 60}))
        decision = _scheme(state_store, token_store).authenticate(make_environ(headers=SESSION_COOKIE))
        assert decision.token.access_token == "short"

    def test_expired_without_refresh_token_redirects(self, make_environ, state_store, token_store) -> None:
        expired_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        token_store.save("sess-1", Token(access_token="gone", expires_at=expired_at))
        decision = _scheme(state_store, token_store).authenticate(make_environ(headers=SESSION_COOKIE))
        assert decision.response.status == 302
