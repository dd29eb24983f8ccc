"""Command: workspace initialization (named init_cmd to avoid shadowing builtins)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from reqflow.commands._base import ReqCommand

if TYPE_CHECKING:
    from reqflow.commands._context import AppContext

_INIT_EXAMPLES = """\
  reqflow init
  reqflow init /srv/depot --name north-depot
  reqflow init . --no-catalog"""


@click.command("init", cls=ReqCommand, examples=_INIT_EXAMPLES)
@click.argument("path", required=False, default=".")
@click.option("--name", default=None, help="Workspace name (default: directory name).")
@click.option("--no-catalog", is_flag=True, help="Skip seeding the default packaging catalog.")
@click.pass_obj
def init_cmd(app: AppContext, path: str, name: str | None, no_catalog: bool) -> None:
    """Initialize a new reqflow workspace."""
    from reqflow.services.init import InitService

    app.emit(
        InitService.init_workspace(
            Path(path).resolve(),
            name=name,
            seed_catalog=not no_catalog,
            sync=True,
        )
    )
