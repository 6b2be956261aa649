"""Scheme contract, dispatcher, and supporting pieces.

- :mod:`authgate.auth.base` -- :class:`AuthScheme` and :class:`AuthDecision`.
- :mod:`authgate.auth.middleware` -- :class:`AuthMiddleware` and :func:`chain`.
- :mod:`authgate.auth.scopes` -- scope gates.
- :mod:`authgate.auth.capabilities` -- validator and store protocols.
- :mod:`authgate.auth.stores` / :mod:`authgate.auth.nonce` -- store adapters.
- :mod:`authgate.auth.manager` -- scheme registry and config-driven building.
"""

from authgate.auth.base import AuthDecision, AuthScheme
from authgate.auth.middleware import AuthMiddleware, chain

__all__ = ["AuthDecision", "AuthMiddleware", "AuthScheme", "chain"]
