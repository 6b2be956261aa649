"""Configuration loading and secret resolution.

A gateway configuration file is JSON or YAML holding a
:class:`~authgate.models.GatewayConfig`. Which file is used is resolved
with the following precedence (high to low):

1. An explicit path (the CLI's ``--config`` flag).
2. The ``AUTHGATE_CONFIG`` environment variable.
3. ``./authgate.yaml``, ``./authgate.yml``, or ``./authgate.json`` in the
   working directory.

Secrets are kept out of config files with *source descriptors*:
``env:VAR_NAME`` or ``file:/path/to/secret``, resolved by
:func:`resolve_credential`.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from authgate.exceptions import ConfigError
from authgate.models import GatewayConfig, OAuth2Settings

CONFIG_ENV_VAR = "AUTHGATE_CONFIG"
"""Environment variable naming the configuration file."""

_PROJECT_CONFIG_FILENAMES = ("authgate.yaml", "authgate.yml", "authgate.json")

_SECRET_FIELDS = ("client_secret",)

REDACTED = "***"


# --- Path resolution ---


def resolve_config_path(cli_path: Optional[str | Path] = None) -> Path:
    """Return the configuration file to use.

    Raises:
        ConfigError: If no candidate exists.
    """
    if cli_path is not None:
        return Path(cli_path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    for name in _PROJECT_CONFIG_FILENAMES:
        candidate = Path.cwd() / name
        if candidate.is_file():
            return candidate
    raise ConfigError(
        f"No configuration file found. Pass --config, set {CONFIG_ENV_VAR}, "
        f"or create one of: {', '.join(_PROJECT_CONFIG_FILENAMES)}"
    )


# --- Loading ---


def parse_config(text: str, fmt: str = "yaml") -> GatewayConfig:
    """Parse configuration text.

    Args:
        text: File contents.
        fmt: ``"json"`` or ``"yaml"``. YAML is a superset of JSON, so
            ``"yaml"`` accepts both.

    Raises:
        ConfigError: If the text cannot be parsed or fails validation.
    """
    try:
        data = json.loads(text) if fmt == "json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid {fmt.upper()} configuration: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level")
    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path) -> GatewayConfig:
    """Load a configuration file; the format follows the file extension.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
    fmt = "json" if path.suffix.lower() == ".json" else "yaml"
    try:
        return parse_config(text, fmt)
    except ConfigError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def redacted_dump(config: GatewayConfig) -> dict[str, Any]:
    """Return *config* as plain data with inline secrets masked."""
    data = config.model_dump(mode="json", exclude_none=True)
    for scheme in data.get("schemes", []):
        for name in _SECRET_FIELDS:
            if scheme.get(name):
                scheme[name] = REDACTED
    return data


# --- Secret resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Secret file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read secret file {path}: {exc}") from exc

    raise ConfigError(f"Unknown secret source format: {source}")


def resolve_client_secret(settings: OAuth2Settings) -> Optional[str]:
    """Return the inline ``client_secret`` or the value of ``client_secret_source``."""
    if settings.client_secret:
        return settings.client_secret
    if settings.client_secret_source:
        return resolve_credential(settings.client_secret_source)
    return None
