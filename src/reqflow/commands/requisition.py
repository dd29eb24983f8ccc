"""Command group: create, inspect and transition requisitions."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from reqflow.commands._base import ReqGroup
from reqflow.commands._items import collect_items, item_options
from reqflow.domain.types import RequisitionStatus
from reqflow.services.requisition import RequisitionService

if TYPE_CHECKING:
    from reqflow.commands._context import AppContext

_STATUS_CHOICE = click.Choice([s.value for s in RequisitionStatus])

_REQUISITION_EXAMPLES = """\
  reqflow requisition create --facility FAC-7 --item "name=Gauze,qty=10,weight=0.2"
  reqflow requisition list --status pending
  reqflow requisition list --ready-for-batching
  reqflow requisition transition REQ-0001 approved --actor dana
  reqflow requisition allowed REQ-0001
  reqflow requisition history REQ-0001"""


@click.group(cls=ReqGroup, examples=_REQUISITION_EXAMPLES)
@click.pass_obj
def requisition(app: AppContext) -> None:
    """Create, inspect, and move requisitions through their lifecycle."""


@requisition.command(
    examples="""\
  reqflow requisition create --item "name=Gauze,qty=10,weight=0.2,volume=0.001"
  reqflow requisition create --facility FAC-7 --requested-by sam \\
      --item "name=Saline,qty=4,weight=1.1,packaging=box_m"
  reqflow requisition create --items-file items.json --notes "Monthly restock\""""
)
@item_options
@click.option("--facility", "facility_id", default=None, help="Requesting facility ID.")
@click.option("--requested-by", default=None, help="Who raised the requisition.")
@click.option("--notes", default=None, help="Free-text notes.")
@click.option("--workspace-id", default=None, help="Override the default workspace ID.")
@click.pass_obj
def create(
    app: AppContext,
    item_specs: tuple[str, ...],
    items_file: Path | None,
    facility_id: str | None,
    requested_by: str | None,
    notes: str | None,
    workspace_id: str | None,
) -> None:
    """Create a pending requisition."""
    items = collect_items(item_specs, items_file)
    if not items:
        raise click.UsageError("At least one --item or an --items-file is required.")
    app.emit(
        RequisitionService(app.store).create(
            items,
            facility_id=facility_id,
            requested_by=requested_by,
            notes=notes,
            workspace_id=workspace_id,
        )
    )


@requisition.command(
    examples="""\
  reqflow requisition show REQ-0001
  reqflow --json requisition show REQ-0001"""
)
@click.argument("requisition_id")
@click.pass_obj
def show(app: AppContext, requisition_id: str) -> None:
    """Show one requisition with its items and next steps."""
    app.emit(RequisitionService(app.store).get(requisition_id))


@requisition.command(
    "list",
    examples="""\
  reqflow requisition list
  reqflow requisition list --status in_transit
  reqflow requisition list --ready-for-batching --limit 20
  reqflow -q requisition list --batch BATCH-12""",
)
@click.option("--status", type=_STATUS_CHOICE, default=None, help="Filter by status.")
@click.option(
    "--ready-for-batching",
    is_flag=True,
    help="Only requisitions batch planning may pick up.",
)
@click.option("--batch", "batch_id", default=None, help="Filter by batch ID.")
@click.option("--workspace-id", default=None, help="Filter by workspace ID.")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Max results.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    status: str | None,
    ready_for_batching: bool,
    batch_id: str | None,
    workspace_id: str | None,
    limit: int | None,
) -> None:
    """List requisitions."""
    app.emit(
        RequisitionService(app.store).list_requisitions(
            status=status,
            ready_for_batching=ready_for_batching,
            batch_id=batch_id,
            workspace_id=workspace_id,
            limit=limit,
        )
    )


@requisition.command(
    examples="""\
  reqflow requisition transition REQ-0001 approved --actor dana
  reqflow requisition transition REQ-0001 packaged
  reqflow requisition transition REQ-0001 assigned_to_batch --batch BATCH-12
  reqflow requisition transition REQ-0001 cancelled --reason "Duplicate request"
  reqflow requisition transition REQ-0001 in_transit --expected-version 5"""
)
@click.argument("requisition_id")
@click.argument("target", type=_STATUS_CHOICE)
@click.option("--batch", "batch_id", default=None, help="Batch ID (assigned_to_batch).")
@click.option("--actor", default=None, help="Who performs the transition.")
@click.option("--reason", default=None, help="Reason (rejection, cancellation, failure).")
@click.option(
    "--expected-version",
    type=int,
    default=None,
    help="Fail with CONFLICT unless the stored version still matches.",
)
@click.pass_obj
def transition(
    app: AppContext,
    requisition_id: str,
    target: str,
    batch_id: str | None,
    actor: str | None,
    reason: str | None,
    expected_version: int | None,
) -> None:
    """Move a requisition to TARGET status."""
    app.emit(
        RequisitionService(app.store).transition(
            requisition_id,
            target,
            batch_id=batch_id,
            actor=actor,
            reason=reason,
            expected_version=expected_version,
        )
    )


@requisition.command(
    examples="""\
  reqflow requisition allowed REQ-0001"""
)
@click.argument("requisition_id")
@click.pass_obj
def allowed(app: AppContext, requisition_id: str) -> None:
    """List the statuses a requisition may move to next."""
    app.emit(RequisitionService(app.store).allowed_transitions(requisition_id))


@requisition.command(
    examples="""\
  reqflow requisition history REQ-0001
  reqflow --json requisition history REQ-0001"""
)
@click.argument("requisition_id")
@click.pass_obj
def history(app: AppContext, requisition_id: str) -> None:
    """Show the status history of a requisition."""
    app.emit(RequisitionService(app.store).history(requisition_id))
