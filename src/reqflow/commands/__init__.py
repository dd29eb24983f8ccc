"""Subcommand modules for reqflow.

``register_commands()`` uses deferred imports to keep ``reqflow --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from reqflow.commands.catalog import catalog
    from reqflow.commands.packaging import packaging
    from reqflow.commands.requisition import requisition

    cli.add_command(requisition)
    cli.add_command(packaging)
    cli.add_command(catalog)

    # --- Standalone commands ---
    from reqflow.commands.init_cmd import init_cmd

    cli.add_command(init_cmd)
