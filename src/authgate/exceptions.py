"""Exception hierarchy for authgate.

All exceptions inherit from :class:`AuthgateError`, which carries a
``status`` attribute (the HTTP status the middleware answers with) and an
``exit_code`` attribute (used by the operator CLI). Schemes raise these
from :meth:`~authgate.auth.base.AuthScheme.authenticate`; the dispatcher in
:class:`~authgate.auth.middleware.AuthMiddleware` catches them and turns
them into a response, so none escape to the WSGI server.

Subclass hierarchy::

    AuthgateError (500)
    +-- ConfigError                    (500, raised at construction time)
    +-- AuthError                      (401)
        +-- MissingCredentialError     (401)
        +-- MalformedCredentialError   (401)
        +-- InvalidCredentialError     (401)
        +-- NonceError                 (401)
        +-- TokenExchangeError         (401)
        +-- AuthorizationPendingError  (202)
        +-- NoTokenInContextError      (401)
        +-- InsufficientScopeError     (403)
        +-- StateMismatchError         (400)
"""

from authgate.status_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
    HTTP_ACCEPTED,
    HTTP_BAD_REQUEST,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_UNAUTHORIZED,
)


class AuthgateError(Exception):
    """Base exception for all authgate errors.

    Every subclass sets a class-level ``status`` corresponding to one of
    the constants in :mod:`authgate.status_codes`.

    Args:
        message: Human-readable error description. Never sent to the client
            verbatim; the default deny bodies are fixed strings.
        status: Optional override for the class-level HTTP status.
    """

    status: int = HTTP_INTERNAL_SERVER_ERROR
    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        if status is not None:
            self.status = status


class ConfigError(AuthgateError):
    """Raised for configuration problems (invalid settings, unreadable files, bad secret sources)."""

    exit_code = EXIT_CONFIG_ERROR


class AuthError(AuthgateError):
    """Raised when a request cannot be authenticated.

    ``replaceable`` tells the dispatcher whether a custom unauthorized
    handler may answer in place of the default response.
    """

    status = HTTP_UNAUTHORIZED
    exit_code = EXIT_AUTH_FAILURE
    replaceable: bool = True


class MissingCredentialError(AuthError):
    """Raised when the request carries no credential for the scheme."""


class MalformedCredentialError(AuthError):
    """Raised when a credential is present but cannot be parsed."""


class InvalidCredentialError(AuthError):
    """Raised when a validator rejects a well-formed credential."""


class NonceError(AuthError):
    """Raised when a Digest response names an unknown or expired nonce."""


class TokenExchangeError(AuthError):
    """Raised when a token endpoint call fails (network error, non-200, undecodable body).

    Args:
        message: Human-readable error description.
        error_code: The endpoint's OAuth2 ``error`` value, when it sent one
            (e.g. ``"access_denied"``, ``"invalid_grant"``).
    """

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code


class AuthorizationPendingError(AuthError):
    """Raised while a device authorization has not been approved yet.

    Args:
        error_code: The token endpoint's ``error`` value,
            ``"authorization_pending"`` or ``"slow_down"``.
    """

    status = HTTP_ACCEPTED
    replaceable = False

    def __init__(self, error_code: str):
        super().__init__(f"Device authorization pending ({error_code})")
        self.error_code = error_code


class NoTokenInContextError(AuthError):
    """Raised by the scope gates when no token was attached upstream."""


class InsufficientScopeError(AuthError):
    """Raised when a token lacks the scopes a route requires."""

    status = HTTP_FORBIDDEN


class StateMismatchError(AuthError):
    """Raised when an authorization callback carries an unknown ``state``.

    Always answered with 400 directly; custom handlers never replace it.
    """

    status = HTTP_BAD_REQUEST
    replaceable = False
