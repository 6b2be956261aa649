"""OAuth2 Device Authorization Grant (:rfc:`8628`) scheme.

For input-constrained clients (TVs, CLIs over SSH) that cannot show a
browser. The scheme exposes the grant over two ``POST`` endpoints on any
protected path, so a device can drive the flow through the gateway:

1. ``POST ?request_device_code=true`` -- the gateway requests a device
   code from ``device_authorization_url`` and returns it as JSON.
2. ``POST ?device_code=<code>`` -- one polling step against ``token_url``.
   While the user has not finished, the answer is 202 with
   ``{"error": "authorization_pending"}`` (or ``"slow_down"``); on success
   the token is stored and the request proceeds.

Otherwise a valid bearer token or a stored token is required.

Server-side code that wants the whole flow in one call (the ``authgate
device login`` command) uses :meth:`DeviceCodeScheme.request_device_code`
followed by :meth:`DeviceCodeScheme.poll_until_complete`, which loops
with the interval and expiry the provider sent.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from authgate.auth.base import AuthDecision
from authgate.auth.capabilities import SessionIDExtractor, TokenStore, TokenValidator
from authgate.exceptions import (
    AuthError,
    AuthorizationPendingError,
    MissingCredentialError,
    TokenExchangeError,
)
from authgate.models import DeviceCode, DeviceCodeSettings, Token
from authgate.oauth.flow import OAuth2Scheme
from authgate.oauth.refresh import RefreshCoordinator
from authgate.status_codes import HTTP_OK
from authgate.wsgi import Environ, Response, WSGIApp, query_params, request_method

logger = logging.getLogger(__name__)

SLOW_DOWN_INCREMENT = 5


class DeviceCodeScheme(OAuth2Scheme):
    """Authenticate via the OAuth2 Device Authorization Grant.

    Args:
        settings: Endpoints, client, and scopes.
        sleep: Replacement for :func:`time.sleep` in
            :meth:`poll_until_complete`.
        clock: Replacement for :func:`time.monotonic` in
            :meth:`poll_until_complete`.
        **kwargs: See :class:`~authgate.oauth.flow.OAuth2Scheme`.
    """

    settings: DeviceCodeSettings

    def __init__(
        self,
        settings: DeviceCodeSettings,
        token_validator: Optional[TokenValidator] = None,
        token_store: Optional[TokenStore] = None,
        session_id_extractor: Optional[SessionIDExtractor] = None,
        unauthorized_handler: Optional[WSGIApp] = None,
        client_secret: Optional[str] = None,
        refresh_coordinator: Optional[RefreshCoordinator] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(
            settings,
            token_validator=token_validator,
            token_store=token_store,
            session_id_extractor=session_id_extractor,
            unauthorized_handler=unauthorized_handler,
            client_secret=client_secret,
            refresh_coordinator=refresh_coordinator,
        )
        self._sleep = sleep if sleep is not None else time.sleep
        self._clock = clock if clock is not None else time.monotonic

    @property
    def auth_type(self) -> str:
        return "device_code"

    def validate_config(self) -> list[str]:
        errors = super().validate_config()
        if not self.settings.device_authorization_url:
            errors.append("device_code requires 'device_authorization_url'")
        return errors

    def authenticate(self, environ: Environ) -> AuthDecision:
        token = self.presented_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)

        if request_method(environ) == "POST":
            params = query_params(environ)
            if params.get("request_device_code") == "true":
                device = self.request_device_code()
                return AuthDecision.respond(Response.json(HTTP_OK, device.model_dump(exclude_none=True)))
            device_code = params.get("device_code")
            if device_code:
                token = self.client.poll_device_token(device_code)
                self.save_token(environ, token)
                return AuthDecision.allow(token=token)

        token = self.stored_token(environ)
        if token is not None:
            return AuthDecision.allow(token=token)
        raise MissingCredentialError("No device authorization token")

    def challenge(self, environ: Environ, error: AuthError) -> Response:
        if isinstance(error, AuthorizationPendingError):
            return Response.json(error.status, {"error": error.error_code})
        return super().challenge(environ, error)

    def request_device_code(self) -> DeviceCode:
        """Ask the device authorization endpoint for a new code.

        Raises:
            TokenExchangeError: If the endpoint fails or answers incompletely.
        """
        return self.client.request_device_code(self.settings.device_authorization_url, self.scopes)

    def poll_until_complete(self, device: DeviceCode) -> Token:
        """Poll ``token_url`` until the user finishes or the code expires.

        Waits ``device.interval`` seconds (at least one) before each attempt;
        ``slow_down`` adds five seconds to the interval for the rest of the
        loop.

        Raises:
            TokenExchangeError: If the user denies access, the code expires,
                the endpoint fails, or ``device.expires_in`` elapses.
        """
        deadline = self._clock() + device.expires_in
        interval = max(device.interval, 1)
        while self._clock() < deadline:
            self._sleep(interval)
            try:
                return self.client.poll_device_token(device.device_code)
            except AuthorizationPendingError as exc:
                if exc.error_code == "slow_down":
                    interval += SLOW_DOWN_INCREMENT
                    logger.debug("Device polling slowed down to %ss", interval)
        raise TokenExchangeError("Device authorization timed out", error_code="expired_token")
