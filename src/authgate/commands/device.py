"""Device commands -- run the OAuth2 device authorization flow from a terminal.

``authgate device login --scheme NAME`` reads the named ``device_code``
scheme from the configuration file, requests a device code, tells the user
where to enter it, and polls until the provider issues a token. The token
is printed to stdout.
"""

from __future__ import annotations

from typing import Optional

import typer

from authgate.commands.config import ConfigOption, load_or_exit
from authgate.output import error, info, print_result, success

device_app = typer.Typer(no_args_is_help=True)


@device_app.command("login")
def device_login(
    scheme_name: str = typer.Option(..., "--scheme", "-s", help="Name (or type) of a device_code scheme."),
    config_path: Optional[str] = ConfigOption,
) -> None:
    """Obtain a token through the device authorization flow.

    Raises:
        typer.Exit: With code 2 for configuration problems and 3 when the
            provider refuses or the code expires.
    """
    from authgate.auth.manager import Capabilities, create_default_manager
    from authgate.exceptions import AuthError, ConfigError
    from authgate.models import DeviceCodeSettings
    from authgate.status_codes import EXIT_CONFIG_ERROR

    _, config = load_or_exit(config_path)
    try:
        settings = config.get_scheme(scheme_name)
    except KeyError:
        error(f"No scheme named '{scheme_name}' in the configuration")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    if not isinstance(settings, DeviceCodeSettings):
        error(f"Scheme '{scheme_name}' is of type '{settings.type}', not 'device_code'")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    try:
        scheme = create_default_manager().build(settings, Capabilities.offline())
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    try:
        device = scheme.request_device_code()
        info(f"Open {device.verification_uri} and enter the code: {device.user_code}")
        if device.verification_uri_complete:
            info(f"Or open {device.verification_uri_complete}")
        token = scheme.poll_until_complete(device)
    except AuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    success("Device authorized")
    print_result(token.model_dump(mode="json"))
