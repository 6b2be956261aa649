"""OAuth2 plumbing shared by the flow schemes.

Token endpoint calls, PKCE, ``state`` generation, and refresh coalescing.
"""

from authgate.oauth.pkce import code_challenge, generate_pkce_pair
from authgate.oauth.refresh import RefreshCoordinator
from authgate.oauth.state import generate_state
from authgate.oauth.token_client import TokenClient

__all__ = [
    "RefreshCoordinator",
    "TokenClient",
    "code_challenge",
    "generate_pkce_pair",
    "generate_state",
]
