"""Canonical Pydantic models shared across all authgate modules.

The models fall into two groups:

**Runtime values** -- produced and consumed while requests are processed:
    :class:`Token`, :class:`DeviceCode`, and :class:`PendingAuthorization`.

**Settings models** -- the declarative part of each scheme's configuration,
loaded from JSON or YAML by :mod:`authgate.config`:
    :class:`BasicSettings`, :class:`BearerSettings`, :class:`ApiKeySettings`,
    :class:`DigestSettings`, :class:`MutualTLSSettings`,
    :class:`AuthCodeSettings`, :class:`ImplicitSettings`,
    :class:`ClientCredentialsSettings`, :class:`DeviceCodeSettings`,
    :class:`OpenIDConnectSettings`, gathered in :class:`GatewayConfig`.

Settings never hold behaviour. Validators, stores, and handlers are
supplied in code (see :class:`~authgate.auth.manager.Capabilities`).
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Runtime values ---


class Token(BaseModel):
    """An OAuth2 access token, optionally carrying an OpenID Connect ID token.

    ``expires_at`` of ``None`` means the token never expires. ``scope`` is
    the raw space-delimited string from the token endpoint; use
    :meth:`scopes` for the parsed set.

    Example::

        token = Token.from_response({"access_token": "abc", "expires_in": 3600})
        assert not token.is_expired()
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0
    refresh_token: str = ""
    scope: str = ""
    id_token: str = ""
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("issued_at", "expires_at")
    @classmethod
    def _ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @classmethod
    def from_response(cls, data: dict[str, Any], now: Optional[datetime] = None) -> Token:
        """Build a token from a token endpoint JSON body.

        Stamps ``issued_at`` with *now* and sets ``expires_at`` to
        ``now + expires_in`` when ``expires_in`` is positive. ``null``
        members are treated as absent.

        Args:
            data: Decoded JSON object returned by the token endpoint.
            now: Override for the current time.

        Raises:
            pydantic.ValidationError: If ``access_token`` is missing.
        """
        fields = {key: value for key, value in data.items() if value is not None}
        fields.pop("issued_at", None)
        fields.pop("expires_at", None)
        token = cls.model_validate(fields)
        issued = now or utcnow()
        token.issued_at = issued
        if token.expires_in > 0:
            token.expires_at = issued + timedelta(seconds=token.expires_in)
        return token

    def is_expired(self, buffer: float = 0.0, now: Optional[datetime] = None) -> bool:
        """Return ``True`` once ``now + buffer`` seconds is past ``expires_at``."""
        if self.expires_at is None:
            return False
        current = now or utcnow()
        return current + timedelta(seconds=buffer) > self.expires_at

    def needs_refresh(self, buffer: float = 0.0, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when the token is inside the buffer and can be refreshed."""
        return bool(self.refresh_token) and self.is_expired(buffer, now)

    def scopes(self) -> set[str]:
        """Split ``scope`` on single spaces into a set."""
        return {item for item in self.scope.split(" ") if item}


class DeviceCode(BaseModel):
    """Response of a device authorization endpoint (:rfc:`8628` section 3.2)."""

    model_config = ConfigDict(extra="ignore")

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    expires_in: int = 1800
    interval: int = 5

    @model_validator(mode="before")
    @classmethod
    def _accept_verification_url(cls, data: Any) -> Any:
        # Some providers (Google) still send the draft name.
        if isinstance(data, dict) and "verification_uri" not in data and "verification_url" in data:
            data = {**data, "verification_uri": data["verification_url"]}
        return data


class PendingAuthorization(BaseModel):
    """What a state store remembers about an issued authorization redirect."""

    state: str
    return_to: str = "/"
    code_verifier: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# --- Settings ---


class SchemeSettings(BaseModel):
    """Fields shared by every scheme's settings.

    ``name`` identifies the scheme in CLI commands when a config file
    declares more than one of the same type; it defaults to ``type``.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.type  # type: ignore[attr-defined]


class BasicSettings(SchemeSettings):
    type: Literal["basic"] = "basic"
    realm: str = "Restricted"


class BearerSettings(SchemeSettings):
    type: Literal["bearer"] = "bearer"


class ApiKeyLocation(str, enum.Enum):
    """Where an API key is read from."""

    HEADER = "header"
    QUERY = "query"
    COOKIE = "cookie"


class ApiKeySettings(SchemeSettings):
    type: Literal["api_key"] = "api_key"
    key_name: str = "X-API-Key"
    location: ApiKeyLocation = ApiKeyLocation.HEADER


class DigestSettings(SchemeSettings):
    """Digest access authentication (:rfc:`2617`, MD5 only).

    ``single_use_nonces`` removes a nonce after its first successful use;
    by default a nonce may be replayed until ``nonce_ttl`` elapses.
    """

    type: Literal["digest"] = "digest"
    realm: str = "Restricted"
    nonce_ttl: float = Field(default=1800.0, gt=0)
    single_use_nonces: bool = False


class MutualTLSSettings(SchemeSettings):
    type: Literal["mutual_tls"] = "mutual_tls"


class OAuth2Settings(SchemeSettings):
    """Fields shared by the OAuth2 flows.

    Secrets may be given inline as ``client_secret`` or indirectly as a
    ``client_secret_source`` (``env:VAR`` or ``file:/path``).
    """

    client_id: str = ""
    client_secret: Optional[str] = None
    client_secret_source: Optional[str] = None
    token_url: str = ""
    scopes: list[str] = Field(default_factory=list)
    refresh_buffer: float = Field(default=300.0, ge=0)
    timeout: float = Field(default=30.0, gt=0)


class AuthCodeSettings(OAuth2Settings):
    type: Literal["oauth2_auth_code"] = "oauth2_auth_code"
    authorization_url: str = ""
    redirect_url: str = ""
    pkce: bool = False
    pkce_method: Literal["S256", "plain"] = "S256"


class ImplicitSettings(OAuth2Settings):
    type: Literal["oauth2_implicit"] = "oauth2_implicit"
    authorization_url: str = ""
    redirect_url: str = ""


class ClientCredentialsSettings(OAuth2Settings):
    """Client Credentials grant.

    With ``fetch_on_miss`` off (the default) a request without a cached
    token is denied; with it on, a fresh token is requested from
    ``token_url`` and cached.
    """

    type: Literal["oauth2_client_credentials"] = "oauth2_client_credentials"
    fetch_on_miss: bool = False


class DeviceCodeSettings(OAuth2Settings):
    type: Literal["device_code"] = "device_code"
    device_authorization_url: str = ""


class OIDCMode(str, enum.Enum):
    """How an OpenID Connect scheme authenticates requests."""

    BEARER = "bearer"
    REDIRECT = "redirect"


class OpenIDConnectSettings(OAuth2Settings):
    """OpenID Connect on top of the Authorization Code flow.

    ``mode`` is explicit: ``bearer`` only validates presented tokens,
    ``redirect`` runs the full login flow against ``issuer_url``.
    """

    type: Literal["openid_connect"] = "openid_connect"
    mode: OIDCMode = OIDCMode.BEARER
    scopes: list[str] = Field(default_factory=lambda: ["openid"])
    issuer_url: str = ""
    redirect_url: str = ""
    discovery: bool = False

    @field_validator("scopes")
    @classmethod
    def _ensure_openid(cls, value: list[str]) -> list[str]:
        if "openid" not in value:
            return [*value, "openid"]
        return value


SchemeConfig = Annotated[
    Union[
        BasicSettings,
        BearerSettings,
        ApiKeySettings,
        DigestSettings,
        MutualTLSSettings,
        AuthCodeSettings,
        ImplicitSettings,
        ClientCredentialsSettings,
        DeviceCodeSettings,
        OpenIDConnectSettings,
    ],
    Field(discriminator="type"),
]
"""Discriminated union of all built-in scheme settings, keyed on ``type``."""


class GatewayConfig(BaseModel):
    """Top-level configuration file contents.

    Example (YAML)::

        allow_anonymous: false
        schemes:
          - type: bearer
          - type: oauth2_client_credentials
            client_id: svc
            client_secret_source: env:SVC_SECRET
            token_url: https://idp.example.com/token
    """

    model_config = ConfigDict(extra="forbid")

    schemes: list[SchemeConfig] = Field(default_factory=list)
    allow_anonymous: bool = False

    def get_scheme(self, name: str) -> SchemeConfig:
        """Return the scheme whose ``name`` (or ``type``) equals *name*.

        Raises:
            KeyError: If no scheme matches.
        """
        for scheme in self.schemes:
            if scheme.display_name == name:
                return scheme
        raise KeyError(name)
