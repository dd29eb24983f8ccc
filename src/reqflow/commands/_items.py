"""Shared ``--item`` / ``--items-file`` parsing for requisition and packaging commands."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click

from reqflow.services._helpers import parse_item_spec

# Short CLI keys → RequisitionItem fields.
_ITEM_KEYS: dict[str, str] = {
    "id": "id",
    "name": "item_name",
    "item_name": "item_name",
    "ref": "item_ref",
    "item_ref": "item_ref",
    "qty": "quantity",
    "quantity": "quantity",
    "weight": "unit_weight_kg",
    "unit_weight_kg": "unit_weight_kg",
    "volume": "unit_volume_m3",
    "unit_volume_m3": "unit_volume_m3",
    "packaging": "packaging_type",
    "packaging_type": "packaging_type",
}


def item_options(func: Any) -> Any:
    """Decorator adding the repeatable ``--item`` and ``--items-file`` options."""
    func = click.option(
        "--items-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="JSON file holding a list of item objects.",
    )(func)
    return click.option(
        "--item",
        "item_specs",
        multiple=True,
        help="Item as key=value pairs: name, qty, weight, volume, packaging, ref, id.",
    )(func)


def collect_items(item_specs: Sequence[str], items_file: Path | None) -> list[dict[str, Any]]:
    """Merge ``--item`` specs and ``--items-file`` into raw item mappings.

    Raises:
        click.BadParameter: Unknown key, malformed spec, or bad JSON.
    """
    items: list[dict[str, Any]] = []
    if items_file is not None:
        try:
            loaded = json.loads(items_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in {items_file}: {exc}"
            raise click.BadParameter(msg, param_hint="--items-file") from exc
        if not isinstance(loaded, list) or not all(isinstance(i, dict) for i in loaded):
            msg = "Expected a JSON list of item objects"
            raise click.BadParameter(msg, param_hint="--items-file")
        items.extend(_normalize(i, "--items-file") for i in loaded)

    for spec in item_specs:
        try:
            fields = parse_item_spec(spec)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--item") from exc
        items.append(_normalize(fields, "--item"))
    return items


def _normalize(raw: dict[str, Any], hint: str) -> dict[str, Any]:
    item: dict[str, Any] = {}
    for key, value in raw.items():
        field = _ITEM_KEYS.get(key)
        if field is None:
            msg = f"Unknown item key {key!r}; expected one of {sorted(set(_ITEM_KEYS))}"
            raise click.BadParameter(msg, param_hint=hint)
        item[field] = value
    return item
