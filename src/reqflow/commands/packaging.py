"""Command group: packaging previews and frozen packaging plans."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from reqflow.commands._base import ReqGroup
from reqflow.commands._items import collect_items, item_options
from reqflow.services.packaging import PackagingService

if TYPE_CHECKING:
    from reqflow.commands._context import AppContext

_PACKAGING_EXAMPLES = """\
  reqflow packaging preview REQ-0001
  reqflow packaging preview --item "name=Gauze,qty=10,weight=0.2"
  reqflow packaging show REQ-0001"""


@click.group(cls=ReqGroup, examples=_PACKAGING_EXAMPLES)
@click.pass_obj
def packaging(app: AppContext) -> None:
    """Preview and inspect packaging slot demand."""


@packaging.command(
    examples="""\
  reqflow packaging preview REQ-0001
  reqflow packaging preview --item "name=Gauze,qty=10,weight=0.2" \\
      --item "name=Oxygen cylinder,qty=2,weight=25,packaging=crate_xl"
  reqflow --json packaging preview --items-file items.json"""
)
@click.argument("requisition_id", required=False, default=None)
@item_options
@click.pass_obj
def preview(
    app: AppContext,
    requisition_id: str | None,
    item_specs: tuple[str, ...],
    items_file: Path | None,
) -> None:
    """Compute packaging without changing anything.

    Pass a REQUISITION_ID to preview a stored requisition, or items to
    preview an ad-hoc list.
    """
    items = collect_items(item_specs, items_file)
    if (requisition_id is None) == (not items):
        raise click.UsageError("Pass either REQUISITION_ID or --item/--items-file, not both.")
    app.emit(
        PackagingService(app.store).preview(
            requisition_id,
            items=items or None,
        )
    )


@packaging.command(
    examples="""\
  reqflow packaging show REQ-0001
  reqflow -v packaging show REQ-0001"""
)
@click.argument("requisition_id")
@click.pass_obj
def show(app: AppContext, requisition_id: str) -> None:
    """Show the frozen packaging of a requisition."""
    app.emit(PackagingService(app.store).show(requisition_id))
