"""Anti-CSRF ``state`` values for authorization redirects."""

import secrets

STATE_BYTES = 32


def generate_state() -> str:
    """Return 32 cryptographically random bytes, URL-safe base64 encoded."""
    return secrets.token_urlsafe(STATE_BYTES)
