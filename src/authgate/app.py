"""Typer application and CLI entry point for authgate.

The ``authgate`` command is an operator tool around the library: it
validates and displays gateway configuration files, lists the registered
schemes, runs the device authorization flow from a terminal, and computes
Digest responses for manual testing with ``curl``.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.

See Also:
    :mod:`authgate.config`: Configuration file resolution.
    :mod:`authgate.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import sys

import typer

from authgate import __version__
from authgate.commands.config import config_app
from authgate.commands.device import device_app
from authgate.commands.digest import digest_app
from authgate.commands.schemes import schemes_command
from authgate.status_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="authgate",
    help="Validate and exercise authgate authentication configurations.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_app, name="config", help="Configuration file commands.")
app.add_typer(device_app, name="device", help="OAuth2 device authorization flow.")
app.add_typer(digest_app, name="digest", help="HTTP Digest helpers.")
app.command("schemes")(schemes_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"authgate {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log library debug messages to stderr."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~authgate.output.OutputManager` from the
    CLI flags and, with ``--verbose``, routes library logging to stderr.
    """
    from authgate.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet))

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


def main() -> None:
    """CLI entry point invoked by the ``authgate`` console script.

    Unhandled :class:`~authgate.exceptions.AuthgateError` instances cause a
    clean exit with the error's ``exit_code``.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    from authgate.exceptions import AuthgateError
    from authgate.output import error

    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except AuthgateError as exc:
        error(str(exc))
        sys.exit(exc.exit_code or EXIT_GENERIC_FAILURE)
