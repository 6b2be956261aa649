"""Tests for the device_code scheme (OAuth2 Device Authorization Grant, RFC 8628)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from authgate.auth.capabilities import cookie_session_extractor
from authgate.auth.middleware import AuthMiddleware
from authgate.auth.stores import MemoryTokenStore
from authgate.exceptions import TokenExchangeError
from authgate.models import DeviceCode, DeviceCodeSettings, Token
from authgate.schemes.device_code import DeviceCodeScheme
from authgate.wsgi import Response

POST = "authgate.oauth.token_client.httpx.post"
DEVICE_BODY = {
    "device_code": "dev-123",
    "user_code": "WDJB-MJHT",
    "verification_uri": "https://idp.example.com/device",
    "verification_uri_complete": "https://idp.example.com/device?user_code=WDJB-MJHT",
    "expires_in": 1800,
    "interval": 5,
}


def _mock_httpx_post(response_data: dict[str, object] | None = None, status_code: int = 200) -> MagicMock:
    if response_data is None:
        response_data = {"access_token": "device-token", "expires_in": 3600}
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = response_data
    return mock_response


def _pending(error: str = "authorization_pending") -> MagicMock:
    return _mock_httpx_post({"error": error}, 400)


class FakeTime:
    """Clock and sleep pair; sleeping advances the clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _make_settings(**kwargs: object) -> DeviceCodeSettings:
    defaults: dict[str, object] = {
        "client_id": "tv-app",
        "token_url": "https://idp.example.com/token",
        "device_authorization_url": "https://idp.example.com/device/code",
        "scopes": ["openid", "profile"],
    }
    defaults.update(kwargs)
    return DeviceCodeSettings(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture()
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture()
def scheme(token_store, fake_time) -> DeviceCodeScheme:
    return DeviceCodeScheme(
        _make_settings(),
        token_store=token_store,
        session_id_extractor=cookie_session_extractor(),
        sleep=fake_time.sleep,
        clock=fake_time.clock,
    )


# -------------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------------


class TestDeviceCodeConfig:
    def test_auth_type(self, scheme) -> None:
        assert scheme.auth_type == "device_code"

    def test_valid(self, scheme) -> None:
        assert scheme.validate_config() == []

    def test_missing_device_authorization_url(self) -> None:
        errors = DeviceCodeScheme(_make_settings(device_authorization_url="")).validate_config()
        assert any("device_authorization_url" in e for e in errors)

    def test_all_missing(self) -> None:
        errors = DeviceCodeScheme(DeviceCodeSettings()).validate_config()
        assert len(errors) == 3


# -------------------------------------------------------------------------
# Middleware endpoints
# -------------------------------------------------------------------------


class TestDeviceCodeMiddleware:
    def test_request_device_code(self, scheme, make_environ, call_app, downstream) -> None:
        environ = make_environ("/tv", method="POST", query="request_device_code=true")
        with patch(POST, return_value=_mock_httpx_post(DEVICE_BODY)) as mock_post:
            result = call_app(AuthMiddleware(downstream, scheme), environ)

        assert result.status == 200
        assert result.header("Content-Type") == "application/json"
        body = json.loads(result.body)
        assert body["user_code"] == "WDJB-MJHT"
        assert body["verification_uri"] == "https://idp.example.com/device"
        assert mock_post.call_args.kwargs["data"] == {"client_id": "tv-app", "scope": "openid profile"}
        assert not downstream.called

    def test_poll_pending_is_202(self, scheme, make_environ, call_app, downstream) -> None:
        app = AuthMiddleware(downstream, scheme, unauthorized_handler=Response(401, body="custom"))
        environ = make_environ("/tv", method="POST", query="device_code=dev-123")
        with patch(POST, return_value=_pending()):
            result = call_app(app, environ)
        assert result.status == 202
        assert json.loads(result.body) == {"error": "authorization_pending"}

    def test_poll_slow_down_is_202(self, scheme, make_environ, call_app, downstream) -> None:
        environ = make_environ("/tv", method="POST", query="device_code=dev-123")
        with patch(POST, return_value=_pending("slow_down")):
            result = call_app(AuthMiddleware(downstream, scheme), environ)
        assert result.status == 202
        assert json.loads(result.body) == {"error": "slow_down"}

    def test_poll_success(self, scheme, token_store, make_environ, call_app, downstream) -> None:
        environ = make_environ(
            "/tv", method="POST", query="device_code=dev-123", headers={"Cookie": "session_id=tv-1"}
        )
        with patch(POST, return_value=_mock_httpx_post()):
            result = call_app(AuthMiddleware(downstream, scheme), environ)
        assert result.status == 200
        assert downstream.called
        assert token_store.load("tv-1").access_token == "device-token"

    def test_poll_denied_is_401(self, scheme, make_environ, call_app, downstream) -> None:
        environ = make_environ("/tv", method="POST", query="device_code=dev-123")
        with patch(POST, return_value=_mock_httpx_post({"error": "access_denied"}, 400)):
            result = call_app(AuthMiddleware(downstream, scheme), environ)
        assert result.status == 401

    def test_get_without_token_is_401(self, scheme, make_environ, call_app, downstream) -> None:
        environ = make_environ("/tv", query="request_device_code=true")
        with patch(POST) as mock_post:
            result = call_app(AuthMiddleware(downstream, scheme), environ)
        assert result.status == 401
        mock_post.assert_not_called()

    def test_stored_token_proceeds(self, scheme, token_store, make_environ, call_app, downstream) -> None:
        token_store.save("tv-1", Token(access_token="stored"))
        environ = make_environ("/tv", headers={"Cookie": "session_id=tv-1"})
        assert call_app(AuthMiddleware(downstream, scheme), environ).status == 200


# -------------------------------------------------------------------------
# Polling loop
# -------------------------------------------------------------------------


class TestPollUntilComplete:
    def test_pending_then_success(self, scheme, fake_time) -> None:
        device = DeviceCode.model_validate(DEVICE_BODY)
        responses = [_pending(), _pending(), _mock_httpx_post()]
        with patch(POST, side_effect=responses) as mock_post:
            token = scheme.poll_until_complete(device)
        assert token.access_token == "device-token"
        assert mock_post.call_count == 3
        assert fake_time.sleeps == [5, 5, 5]

    def test_slow_down_increases_interval(self, scheme, fake_time) -> None:
        device = DeviceCode.model_validate(DEVICE_BODY)
        responses = [_pending("slow_down"), _pending(), _mock_httpx_post()]
        with patch(POST, side_effect=responses):
            scheme.poll_until_complete(device)
        assert fake_time.sleeps == [5, 10, 10]

    def test_expires(self, scheme, fake_time) -> None:
        device = DeviceCode.model_validate({**DEVICE_BODY, "expires_in": 12})
        with patch(POST, return_value=_pending()) as mock_post:
            with pytest.raises(TokenExchangeError) as exc_info:
                scheme.poll_until_complete(device)
        assert exc_info.value.error_code == "expired_token"
        assert mock_post.call_count == 3

    def test_denied(self, scheme) -> None:
        device = DeviceCode.model_validate(DEVICE_BODY)
        with patch(POST, return_value=_mock_httpx_post({"error": "access_denied"}, 400)):
            with pytest.raises(TokenExchangeError) as exc_info:
                scheme.poll_until_complete(device)
        assert exc_info.value.error_code == "access_denied"

    def test_zero_interval_waits_one_second(self, scheme, fake_time) -> None:
        device = DeviceCode.model_validate({**DEVICE_BODY, "interval": 0})
        with patch(POST, return_value=_mock_httpx_post()):
            scheme.poll_until_complete(device)
        assert fake_time.sleeps == [1]
