"""Command group: packaging slot-cost catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from reqflow.commands._base import ReqGroup
from reqflow.services.catalog import CatalogService

if TYPE_CHECKING:
    from reqflow.commands._context import AppContext

_CATALOG_EXAMPLES = """\
  reqflow catalog list
  reqflow catalog set pallet --slot-cost 4 --max-weight 400 --max-volume 1.2
  reqflow catalog deactivate bag_s"""


@click.group(cls=ReqGroup, examples=_CATALOG_EXAMPLES)
@click.pass_obj
def catalog(app: AppContext) -> None:
    """Manage packaging types and their slot costs."""


@catalog.command(
    "list",
    examples="""\
  reqflow catalog list
  reqflow catalog list --all""",
)
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive types.")
@click.pass_obj
def list_cmd(app: AppContext, include_inactive: bool) -> None:
    """List packaging types."""
    app.emit(CatalogService(app.store).list_costs(include_inactive=include_inactive))


@catalog.command(
    "set",
    examples="""\
  reqflow catalog set pallet --slot-cost 4 --max-weight 400 --max-volume 1.2
  reqflow catalog set box_m --slot-cost 0.5 --max-weight 18 --max-volume 0.06 \\
      --description "Medium box (reinforced)\"""",
)
@click.argument("packaging_type")
@click.option("--slot-cost", type=float, required=True, help="Slot-units per full package.")
@click.option("--max-weight", type=float, required=True, help="Capacity of one package, kg.")
@click.option("--max-volume", type=float, required=True, help="Capacity of one package, m³.")
@click.option("--description", default="", help="Human description.")
@click.option("--inactive", is_flag=True, help="Store the type as inactive.")
@click.pass_obj
def set_cmd(
    app: AppContext,
    packaging_type: str,
    slot_cost: float,
    max_weight: float,
    max_volume: float,
    description: str,
    inactive: bool,
) -> None:
    """Create or replace a packaging type."""
    app.emit(
        CatalogService(app.store).upsert(
            packaging_type,
            slot_cost=slot_cost,
            max_weight_kg=max_weight,
            max_volume_m3=max_volume,
            description=description,
            is_active=not inactive,
        )
    )


@catalog.command(
    examples="""\
  reqflow catalog deactivate bag_s"""
)
@click.argument("packaging_type")
@click.pass_obj
def deactivate(app: AppContext, packaging_type: str) -> None:
    """Stop using a packaging type for new computations."""
    app.emit(CatalogService(app.store).deactivate(packaging_type))
