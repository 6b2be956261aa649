"""Schemes command -- list the scheme types the manager can build."""

from __future__ import annotations

from authgate.output import print_table


def schemes_command() -> None:
    """List built-in and plugin scheme types.

    Plugin schemes come from the ``authgate.schemes`` entry-point group.
    """
    from authgate.auth.manager import create_default_manager

    manager = create_default_manager()
    builtin = set(manager.list_types())
    manager.discover()
    rows = [
        [scheme_type, "builtin" if scheme_type in builtin else "plugin"]
        for scheme_type in manager.list_types()
    ]
    print_table(["type", "source"], rows, title="Authentication schemes")
