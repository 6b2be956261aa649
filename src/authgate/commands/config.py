"""Config commands -- validate and display gateway configuration files.

Provides the ``authgate config`` sub-command group. The file is located
with :func:`~authgate.config.resolve_config_path` (``--config`` flag,
``AUTHGATE_CONFIG``, then ``./authgate.{yaml,yml,json}``).
"""

from __future__ import annotations

from typing import Optional

import typer

from authgate.output import error, info, print_result, print_table, success

config_app = typer.Typer(no_args_is_help=True)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to a JSON or YAML config file.")


def load_or_exit(config_path: Optional[str]):
    """Resolve and load the configuration, exiting with code 2 on failure."""
    from authgate.config import load_config, resolve_config_path
    from authgate.exceptions import ConfigError

    try:
        path = resolve_config_path(config_path)
        return path, load_config(path)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)


@config_app.command("validate")
def config_validate(config_path: Optional[str] = ConfigOption) -> None:
    """Check that every scheme in the configuration can be built.

    Settings are validated, client secret sources resolved, and each
    scheme's own configuration checks run. Validators and stores are not
    needed; placeholders stand in for them.

    Raises:
        typer.Exit: With code 2 if any scheme is invalid.

    Example::

        authgate config validate --config gateway.yaml
    """
    from authgate.auth.manager import Capabilities, create_default_manager
    from authgate.exceptions import ConfigError
    from authgate.status_codes import EXIT_CONFIG_ERROR

    path, config = load_or_exit(config_path)
    manager = create_default_manager()
    manager.discover()
    capabilities = Capabilities.offline()

    rows: list[list[str]] = []
    failed = 0
    for settings in config.schemes:
        try:
            manager.build(settings, capabilities)
            status = "ok"
        except ConfigError as exc:
            status = str(exc)
            failed += 1
        rows.append([settings.display_name, settings.type, status])

    print_table(["name", "type", "status"], rows, title=str(path))
    if failed:
        error(f"{failed} of {len(config.schemes)} scheme(s) invalid")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    success(f"{len(config.schemes)} scheme(s) valid")


@config_app.command("show")
def config_show(config_path: Optional[str] = ConfigOption) -> None:
    """Show the configuration with inline secrets redacted.

    Example::

        authgate config show
        authgate --json config show
    """
    from authgate.config import redacted_dump

    path, config = load_or_exit(config_path)
    info(f"Config file: {path}")
    print_result(redacted_dump(config))
