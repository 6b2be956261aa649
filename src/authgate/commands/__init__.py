"""Built-in CLI sub-commands for authgate.

Each module exposes a Typer sub-application (or a single command function)
that :mod:`authgate.app` mounts on the root application.
"""
