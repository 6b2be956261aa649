"""Form-encoded calls to OAuth2 token and device authorization endpoints.

Every grant the gateway performs goes through :class:`TokenClient`:

- ``authorization_code`` -- :meth:`TokenClient.exchange_code`
- ``refresh_token`` -- :meth:`TokenClient.refresh`
- ``client_credentials`` -- :meth:`TokenClient.client_credentials`
- device authorization and the ``device_code`` grant (:rfc:`8628`) --
  :meth:`TokenClient.request_device_code` and
  :meth:`TokenClient.poll_device_token`

Calls are blocking :func:`httpx.post` requests bounded by ``timeout``. Only
HTTP 200 with a decodable JSON object counts as success. No call is retried;
every failure surfaces as :class:`~authgate.exceptions.TokenExchangeError`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from authgate.exceptions import AuthorizationPendingError, TokenExchangeError
from authgate.models import DeviceCode, Token

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
PENDING_ERRORS = ("authorization_pending", "slow_down")


class TokenClient:
    """Client for one OAuth2 client registration at one token endpoint.

    Args:
        token_url: The token endpoint.
        client_id: The OAuth2 client identifier.
        client_secret: Optional client secret; sent in the form body when set.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Token:
        """Exchange an authorization code for a token.

        Args:
            code: The ``code`` query parameter of the callback.
            redirect_uri: The redirect URI used in the authorization request.
            code_verifier: The PKCE verifier, when the redirect carried a
                challenge.
            now: Override for the issue timestamp.

        Raises:
            TokenExchangeError: On network errors, a non-200 status, or an
                undecodable body.
        """
        data = self._client_form(grant_type="authorization_code", code=code, redirect_uri=redirect_uri)
        if code_verifier:
            data["code_verifier"] = code_verifier
        return self._token_from(self._post(self.token_url, data, "Token exchange"), now)

    def refresh(self, refresh_token: str, now: Optional[datetime] = None) -> Token:
        """Obtain a new token with a refresh token.

        A response without ``refresh_token`` keeps the one passed in.

        Raises:
            TokenExchangeError: On network errors, a non-200 status, or an
                undecodable body.
        """
        data = self._client_form(grant_type="refresh_token", refresh_token=refresh_token)
        token = self._token_from(self._post(self.token_url, data, "Token refresh"), now)
        if not token.refresh_token:
            token.refresh_token = refresh_token
        return token

    def client_credentials(self, scopes: Optional[list[str]] = None, now: Optional[datetime] = None) -> Token:
        """Request a token with the client's own credentials.

        Raises:
            TokenExchangeError: On network errors, a non-200 status, or an
                undecodable body.
        """
        data = self._client_form(grant_type="client_credentials")
        if scopes:
            data["scope"] = " ".join(scopes)
        return self._token_from(self._post(self.token_url, data, "Token request"), now)

    def request_device_code(self, device_authorization_url: str, scopes: Optional[list[str]] = None) -> DeviceCode:
        """Start a device authorization (:rfc:`8628` section 3.1).

        Raises:
            TokenExchangeError: On network errors, a non-200 status, or a
                response missing ``device_code``/``user_code``.
        """
        data: dict[str, str] = {"client_id": self.client_id}
        if scopes:
            data["scope"] = " ".join(scopes)
        response = self._post(device_authorization_url, data, "Device code request")
        body = self._decode(response, "Device code request")
        if response.status_code != 200:
            raise self._failure("Device code request", response, body)
        try:
            return DeviceCode.model_validate(body)
        except ValidationError as exc:
            raise TokenExchangeError(f"Device code response is incomplete: {exc}") from exc

    def poll_device_token(self, device_code: str, now: Optional[datetime] = None) -> Token:
        """Make one ``device_code`` grant attempt (:rfc:`8628` section 3.4).

        Raises:
            AuthorizationPendingError: While the user has not finished
                (``authorization_pending`` or ``slow_down``).
            TokenExchangeError: When the user denied access, the code
                expired, or the endpoint failed otherwise. ``error_code``
                carries the endpoint's ``error`` value.
        """
        data = {
            "grant_type": DEVICE_CODE_GRANT_TYPE,
            "device_code": device_code,
            "client_id": self.client_id,
        }
        response = self._post(self.token_url, data, "Token polling")
        body = self._decode(response, "Token polling")
        if response.status_code == 200 and "access_token" in body:
            return self._build_token(body, now)
        error = body.get("error", "")
        if error in PENDING_ERRORS:
            raise AuthorizationPendingError(error)
        raise self._failure("Device authorization", response, body)

    # --- internals ---

    def _client_form(self, **fields: str) -> dict[str, str]:
        data = dict(fields)
        data["client_id"] = self.client_id
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data

    def _post(self, url: str, data: dict[str, str], action: str) -> httpx.Response:
        try:
            return httpx.post(
                url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s to %s failed: %s", action, url, exc)
            raise TokenExchangeError(f"{action} failed: {exc}") from exc

    def _decode(self, response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            logger.warning("%s returned an undecodable body (status %s)", action, response.status_code)
            raise TokenExchangeError(f"{action} returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise TokenExchangeError(f"{action} returned a non-object JSON body")
        return body

    def _token_from(self, response: httpx.Response, now: Optional[datetime]) -> Token:
        body = self._decode(response, "Token endpoint")
        if response.status_code != 200:
            raise self._failure("Token endpoint", response, body)
        return self._build_token(body, now)

    def _build_token(self, body: dict[str, Any], now: Optional[datetime]) -> Token:
        try:
            return Token.from_response(body, now)
        except ValidationError as exc:
            raise TokenExchangeError("Token response missing 'access_token' field") from exc

    def _failure(self, action: str, response: httpx.Response, body: dict[str, Any]) -> TokenExchangeError:
        error = body.get("error") or None
        description = body.get("error_description", error or "no error given")
        logger.warning("%s failed with status %s: %s", action, response.status_code, error)
        return TokenExchangeError(
            f"{action} failed with status {response.status_code}: {description}",
            error_code=error,
        )
