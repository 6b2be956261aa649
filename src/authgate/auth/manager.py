"""Auth manager -- registry and builder for authentication schemes.

The :class:`AuthManager` maps scheme type strings (``"basic"``,
``"digest"``, ``"oauth2_client_credentials"``, etc.) to factories that turn
declarative settings plus a :class:`Capabilities` bundle into a ready
:class:`~authgate.auth.base.AuthScheme`. :meth:`AuthManager.wrap` builds
every scheme of a :class:`~authgate.models.GatewayConfig` and stacks them in
front of an application.

For most use cases, call :func:`create_default_manager` to get a manager
pre-loaded with every built-in scheme. Third-party packages add schemes
through the ``authgate.schemes`` entry-point group::

    [project.entry-points."authgate.schemes"]
    hmac = "my_package.hmac:build_hmac_scheme"
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Callable, Optional

from authgate.auth.base import AuthScheme
from authgate.auth.middleware import AuthMiddleware
from authgate.config import resolve_client_secret
from authgate.exceptions import ConfigError
from authgate.models import GatewayConfig, OAuth2Settings, SchemeSettings
from authgate.wsgi import WSGIApp

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "authgate.schemes"
"""The entry-point group name used for scheme discovery."""

_CAPABILITY_NAMES = (
    "password_validator",
    "password_lookup",
    "token_validator",
    "key_validator",
    "certificate_validator",
    "state_store",
    "token_store",
    "session_id_extractor",
    "nonce_store",
    "unauthorized_handler",
)


class Capabilities:
    """The behavioural half of a scheme's configuration.

    Settings files describe *what* a scheme is; capabilities supply the
    code it calls. Every attribute is optional; a factory raises
    :class:`~authgate.exceptions.ConfigError` when one it needs is missing.

    Args:
        overrides: Per-scheme capabilities keyed by scheme name (its
            ``name`` setting or, failing that, its ``type``). Values set
            there win over the shared ones.
        **capabilities: Any of ``password_validator``, ``password_lookup``,
            ``token_validator``, ``key_validator``, ``certificate_validator``,
            ``state_store``, ``token_store``, ``session_id_extractor``,
            ``nonce_store``, ``unauthorized_handler``.

    Example::

        Capabilities(
            token_store=MemoryTokenStore(),
            session_id_extractor=cookie_session_extractor(),
            overrides={"admin": Capabilities(token_validator=check_admin)},
        )
    """

    def __init__(self, overrides: Optional[dict[str, Capabilities]] = None, **capabilities: Any):
        unknown = set(capabilities) - set(_CAPABILITY_NAMES)
        if unknown:
            raise ConfigError(f"Unknown capabilities: {', '.join(sorted(unknown))}")
        for name in _CAPABILITY_NAMES:
            setattr(self, name, capabilities.get(name))
        self.overrides = overrides or {}

    @classmethod
    def offline(cls) -> Capabilities:
        """Capabilities that satisfy every built-in factory but accept nothing.

        Used to build schemes for settings validation and CLI flows, where
        no request is ever authenticated.
        """

        def reject(*args: Any) -> bool:
            return False

        def unknown_user(username: str, realm: str) -> None:
            return None

        return cls(
            password_validator=reject,
            password_lookup=unknown_user,
            token_validator=reject,
            key_validator=reject,
            certificate_validator=reject,
        )

    def for_scheme(self, name: str) -> Capabilities:
        """Return the capabilities that apply to the scheme called *name*."""
        override = self.overrides.get(name)
        if override is None:
            return self
        merged = {
            cap: getattr(override, cap) if getattr(override, cap) is not None else getattr(self, cap)
            for cap in _CAPABILITY_NAMES
        }
        return Capabilities(**merged)

    def require(self, name: str, scheme_type: str) -> Any:
        """Return capability *name* or raise :class:`ConfigError`."""
        value = getattr(self, name)
        if value is None:
            raise ConfigError(f"{scheme_type} requires the '{name}' capability")
        return value


SchemeFactory = Callable[[SchemeSettings, Capabilities], AuthScheme]


class AuthManager:
    """Registry of scheme factories keyed by scheme type.

    Example::

        manager = create_default_manager()
        scheme = manager.build(BasicSettings(realm="admin"), Capabilities(password_validator=check))
        app = manager.wrap(app, load_config("authgate.yaml"), capabilities)
    """

    def __init__(self) -> None:
        self._factories: dict[str, SchemeFactory] = {}

    def register(self, scheme_type: str, factory: SchemeFactory) -> None:
        """Register *factory* for *scheme_type*, replacing any existing one."""
        self._factories[scheme_type] = factory

    def get_factory(self, scheme_type: str) -> SchemeFactory:
        """Retrieve the factory registered for *scheme_type*.

        Raises:
            ConfigError: If no factory is registered for *scheme_type*.
        """
        factory = self._factories.get(scheme_type)
        if factory is None:
            available = ", ".join(sorted(self._factories)) or "(none)"
            raise ConfigError(
                f"No scheme registered for type '{scheme_type}'. "
                f"Available types: {available}"
            )
        return factory

    def list_types(self) -> list[str]:
        """Return the registered scheme types, sorted."""
        return sorted(self._factories.keys())

    def build(self, settings: SchemeSettings, capabilities: Optional[Capabilities] = None) -> AuthScheme:
        """Build and validate the scheme described by *settings*.

        OAuth2 client secrets given as ``client_secret_source`` are resolved
        here, once.

        Raises:
            ConfigError: If the type is unknown, a required capability is
                missing, a secret cannot be resolved, or the scheme reports
                configuration errors.
        """
        scheme_type = settings.type  # type: ignore[attr-defined]
        factory = self.get_factory(scheme_type)
        caps = (capabilities or Capabilities()).for_scheme(settings.display_name)
        if isinstance(settings, OAuth2Settings) and settings.client_secret_source and not settings.client_secret:
            settings = settings.model_copy(update={"client_secret": resolve_client_secret(settings)})
        scheme = factory(settings, caps)
        errors = scheme.validate_config()
        if errors:
            raise ConfigError(f"Invalid '{settings.display_name}' scheme: " + "; ".join(errors))
        return scheme

    def build_all(self, config: GatewayConfig, capabilities: Optional[Capabilities] = None) -> list[AuthScheme]:
        return [self.build(settings, capabilities) for settings in config.schemes]

    def wrap(
        self,
        application: WSGIApp,
        config: GatewayConfig,
        capabilities: Optional[Capabilities] = None,
    ) -> WSGIApp:
        """Put every scheme of *config* in front of *application*.

        The first scheme listed is the outermost layer; a request must
        satisfy all of them.
        """
        schemes = self.build_all(config, capabilities)
        for scheme in reversed(schemes):
            application = AuthMiddleware(application, scheme, allow_anonymous=config.allow_anonymous)
        return application

    def discover(self) -> list[str]:
        """Register factories advertised in the ``authgate.schemes`` entry-point group.

        Returns:
            The names registered. Entry points that fail to load are logged
            as warnings and skipped.
        """
        loaded: list[str] = []
        for ep in importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP):
            try:
                factory = ep.load()
            except (ImportError, AttributeError) as exc:
                logger.warning("Failed to load scheme '%s': %s", ep.name, exc)
                continue
            self.register(ep.name, factory)
            loaded.append(ep.name)
            logger.info("Registered scheme '%s' from %s", ep.name, ep.value)
        return loaded


# --- Built-in factories ---


def _basic(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.basic import BasicScheme

    return BasicScheme(
        caps.require("password_validator", "basic"),
        settings,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _bearer(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.bearer import BearerScheme

    return BearerScheme(
        caps.require("token_validator", "bearer"),
        settings,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _api_key(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.api_key import ApiKeyScheme

    return ApiKeyScheme(
        caps.require("key_validator", "api_key"),
        settings,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _digest(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.digest import DigestScheme

    return DigestScheme(
        caps.require("password_lookup", "digest"),
        settings,
        nonce_store=caps.nonce_store,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _mutual_tls(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.mutual_tls import MutualTLSScheme

    return MutualTLSScheme(
        caps.require("certificate_validator", "mutual_tls"),
        settings,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _oauth2_kwargs(caps: Capabilities) -> dict[str, Any]:
    return {
        "token_validator": caps.token_validator,
        "token_store": caps.token_store,
        "session_id_extractor": caps.session_id_extractor,
        "unauthorized_handler": caps.unauthorized_handler,
    }


def _auth_code(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.oauth2_auth_code import AuthorizationCodeScheme

    return AuthorizationCodeScheme(settings, state_store=caps.state_store, **_oauth2_kwargs(caps))


def _implicit(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.oauth2_implicit import ImplicitScheme

    return ImplicitScheme(
        settings,
        token_validator=caps.token_validator,
        state_store=caps.state_store,
        unauthorized_handler=caps.unauthorized_handler,
    )


def _client_credentials(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.oauth2_client_credentials import ClientCredentialsScheme

    return ClientCredentialsScheme(settings, **_oauth2_kwargs(caps))


def _device_code(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.device_code import DeviceCodeScheme

    return DeviceCodeScheme(settings, **_oauth2_kwargs(caps))


def _openid_connect(settings, caps: Capabilities) -> AuthScheme:
    from authgate.schemes.openid_connect import OpenIDConnectScheme

    return OpenIDConnectScheme(settings, state_store=caps.state_store, **_oauth2_kwargs(caps))


def create_default_manager() -> AuthManager:
    """Create an :class:`AuthManager` pre-loaded with all built-in schemes.

    The following schemes are registered:

    - ``basic`` -- HTTP Basic authentication.
    - ``bearer`` -- opaque bearer token.
    - ``api_key`` -- static key in a header, query parameter, or cookie.
    - ``digest`` -- HTTP Digest (MD5) challenge/response.
    - ``mutual_tls`` -- client certificate from the TLS handshake.
    - ``oauth2_auth_code`` -- OAuth2 authorization-code flow.
    - ``oauth2_implicit`` -- OAuth2 implicit flow.
    - ``oauth2_client_credentials`` -- OAuth2 client-credentials flow.
    - ``device_code`` -- OAuth2 device authorization flow.
    - ``openid_connect`` -- OpenID Connect, bearer or redirect mode.

    Returns:
        A fully initialised :class:`AuthManager`.
    """
    manager = AuthManager()
    manager.register("basic", _basic)
    manager.register("bearer", _bearer)
    manager.register("api_key", _api_key)
    manager.register("digest", _digest)
    manager.register("mutual_tls", _mutual_tls)
    manager.register("oauth2_auth_code", _auth_code)
    manager.register("oauth2_implicit", _implicit)
    manager.register("oauth2_client_credentials", _client_credentials)
    manager.register("device_code", _device_code)
    manager.register("openid_connect", _openid_connect)
    return manager
