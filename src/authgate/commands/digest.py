"""Digest commands -- compute HTTP Digest credentials by hand.

Useful for exercising a ``digest`` protected endpoint with ``curl``::

    authgate digest response -u alice -p secret -r admin \\
        --uri /reports --nonce 9f0c...
"""

from __future__ import annotations

from typing import Optional

import typer

from authgate.output import print_data, print_result

digest_app = typer.Typer(no_args_is_help=True)


@digest_app.command("response")
def digest_response_command(
    username: str = typer.Option(..., "--username", "-u", help="User name."),
    password: str = typer.Option(..., "--password", "-p", help="Clear-text password."),
    realm: str = typer.Option(..., "--realm", "-r", help="Realm from the challenge."),
    uri: str = typer.Option(..., "--uri", help="Request path, exactly as sent."),
    nonce: str = typer.Option(..., "--nonce", help="Nonce from the challenge."),
    method: str = typer.Option("GET", "--method", "-m", help="HTTP method."),
    qop: Optional[str] = typer.Option(None, "--qop", help="Quality of protection, e.g. auth."),
    nc: Optional[str] = typer.Option(None, "--nc", help="Nonce count, e.g. 00000001."),
    cnonce: Optional[str] = typer.Option(None, "--cnonce", help="Client nonce."),
    header_only: bool = typer.Option(False, "--header", help="Print only the Authorization header value."),
) -> None:
    """Compute the Digest ``response`` and the full ``Authorization`` header."""
    from authgate.schemes.digest import build_authorization, digest_response

    method = method.upper()
    authorization = build_authorization(username, realm, password, method, uri, nonce, nc, cnonce, qop)
    if header_only:
        print_data(authorization)
        return
    print_result(
        {
            "response": digest_response(username, realm, password, method, uri, nonce, nc, cnonce, qop),
            "authorization": authorization,
        }
    )
