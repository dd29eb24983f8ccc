"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO); the caller
extracts the text via ``get_output(console)``. Renderers are dispatched
by ``result.op`` in :func:`render_result`. Unknown ops fall through to a
generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from reqflow.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from reqflow.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: IDs for lists, the ID for mutations."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"

    if "id" in result.data:
        return str(result.data["id"])

    items = result.data.get("items")
    if isinstance(items, list):
        return "\n".join(i for i in (_extract_id(item) for item in items) if i)
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "packaging_type", "status", "to_status"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="req.ok"), Text(f"  {result.op}", style="req.op"))


def _status_text(status: Any) -> Text:
    return Text(str(status), style=style_for_status(str(status)))


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="req.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="req.id")
    elif key.endswith("status"):
        v = _status_text(value)
    elif "slot_demand" in key:
        v = Text(str(value), style="req.slots")
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the telemetry span tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations")
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="req.error"),
        Text(f"  {result.op}{code}", style="req.op"),
        Text(" — "),
        Text(msg),
    )

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Mutation renderers ────────────────────────────────────────────────


_MUTATION_KEYS = (
    "id",
    "packaging_type",
    "from_status",
    "to_status",
    "status",
    "batch_id",
    "rounded_slot_demand",
    "item_count",
    "version",
    "created",
    "is_active",
)


def _render_mutation(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render create / transition / catalog-edit results."""
    _status_line(console, result)
    for key in _MUTATION_KEYS:
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


def _render_init(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("name", "path", "config", "database", "catalog_seeded"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


# ── Requisition renderers ─────────────────────────────────────────────


def _render_requisition(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a single requisition as a panel plus its item table."""
    d = result.data
    lines: list[str] = [f"status: {d.get('status')} ({d.get('status_label')})"]
    lines.append(f"progress: {d.get('progress', 0.0):.0%}")
    for key in ("facility_id", "requested_by", "batch_id", "rounded_slot_demand", "version"):
        val = d.get(key)
        if val is not None:
            lines.append(f"{key}: {val}")
    allowed = d.get("allowed_transitions") or []
    lines.append(f"next: {', '.join(allowed) if allowed else '(terminal)'}")

    if verbose:
        for key, val in d.items():
            if key.endswith("_at") and val is not None:
                lines.append(f"{key}: {val}")
    notes = d.get("notes")
    content = "\n".join(lines)
    if notes:
        content += f"\n\n{notes.strip()}"

    style = style_for_status(str(d.get("status", "")))
    title = str(d.get("id", "?"))
    console.print(Panel(Text(content), title=title, border_style=style or "dim"))

    items = d.get("items", [])
    if items:
        table = Table(show_header=True, pad_edge=False, expand=False)
        table.add_column("Line", style="req.id", no_wrap=True)
        table.add_column("Item")
        table.add_column("Qty", justify="right")
        table.add_column("Unit kg", justify="right")
        table.add_column("Unit m³", justify="right")
        table.add_column("Packaging")
        for item in items:
            table.add_row(
                str(item.get("id", "")),
                str(item.get("item_name", "")),
                str(item.get("quantity", "")),
                _opt(item.get("unit_weight_kg")),
                _opt(item.get("unit_volume_m3")),
                _opt(item.get("packaging_type")),
            )
        console.print(table)
    if verbose:
        _render_meta(console, result)


def _render_requisition_table(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("ID", style="req.id", no_wrap=True)
    table.add_column("Status")
    table.add_column("Facility")
    table.add_column("Items", justify="right")
    table.add_column("Slots", style="req.slots", justify="right")
    table.add_column("Batch")
    if verbose:
        table.add_column("Version", style="dim", justify="right")

    for item in items:
        row: list[Any] = [
            str(item.get("id", "")),
            _status_text(item.get("status", "")),
            _opt(item.get("facility_id")),
            str(item.get("item_count", "")),
            _opt(item.get("rounded_slot_demand")),
            _opt(item.get("batch_id")),
        ]
        if verbose:
            row.append(str(item.get("version", "")))
        table.add_row(*row)

    console.print(table)
    console.print(
        f"\n{result.data.get('count', len(items))} requisitions, "
        f"{result.data.get('total_rounded_slot_demand', 0)} slots reserved"
    )


def _render_allowed(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "id", d.get("id"))
    _field(console, "status", d.get("status"))
    items = d.get("items", [])
    if not items:
        console.print("  (terminal: no further transitions)")
        return

    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Target")
    table.add_column("Label")
    table.add_column("Requires")
    for item in items:
        table.add_row(
            _status_text(item["status"]),
            str(item.get("label", "")),
            ", ".join(item.get("requires", [])) or "-",
        )
    console.print(table)


def _render_history(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    table = Table(show_header=True, pad_edge=False, expand=False, title=result.data.get("id"))
    table.add_column("Timestamp", style="dim")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Actor")
    table.add_column("Reason")
    for item in items:
        table.add_row(
            str(item.get("timestamp", "")),
            _opt(item.get("from_status")),
            _status_text(item.get("to_status", "")),
            _opt(item.get("actor")),
            _opt(item.get("reason")),
        )
    console.print(table)


# ── Packaging renderers ───────────────────────────────────────────────


def _render_packaging(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render packaging from either a preview (nested) or a show (flat) payload."""
    d = result.data
    packaging = d.get("packaging", d)
    _status_line(console, result)
    if "requisition_id" in d:
        _field(console, "requisition_id", d["requisition_id"])

    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Line", style="req.id", no_wrap=True)
    table.add_column("Item")
    table.add_column("Packaging")
    table.add_column("Packages", justify="right")
    table.add_column("Slot cost", justify="right")
    table.add_column("Slot demand", style="req.slots", justify="right")
    if verbose:
        table.add_column("kg", justify="right")
        table.add_column("m³", justify="right")

    for item in packaging.get("items", []):
        row = [
            str(item.get("requisition_item_id", "")),
            str(item.get("item_name", "")),
            str(item.get("packaging_type", "")),
            str(item.get("package_count", "")),
            f"{item.get('slot_cost', 0):g}",
            f"{item.get('slot_demand', 0):g}",
        ]
        if verbose:
            row += [f"{item.get('weight_kg', 0):g}", f"{item.get('volume_m3', 0):g}"]
        table.add_row(*row)
    console.print(table)

    for key in (
        "total_slot_demand",
        "rounded_slot_demand",
        "total_weight_kg",
        "total_volume_m3",
        "computed_by",
    ):
        if key in packaging:
            _field(console, key, packaging[key])
    if verbose:
        _render_meta(console, result)


# ── Catalog renderer ──────────────────────────────────────────────────


def _render_catalog(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Type", style="req.id", no_wrap=True)
    table.add_column("Slot cost", style="req.slots", justify="right")
    table.add_column("Max kg", justify="right")
    table.add_column("Max m³", justify="right")
    table.add_column("Active")
    table.add_column("Description", style="dim")
    for item in result.data.get("items", []):
        table.add_row(
            str(item["packaging_type"]),
            f"{item['slot_cost']:g}",
            f"{item['max_weight_kg']:g}",
            f"{item['max_volume_m3']:g}",
            "yes" if item.get("is_active") else "no",
            str(item.get("description", "")),
        )
    console.print(table)


# ── Generic fallback ──────────────────────────────────────────────────


def _opt(value: Any) -> str:
    return "-" if value is None else str(value)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Requisitions
    "create_requisition": _render_mutation,
    "transition": _render_mutation,
    "get_requisition": _render_requisition,
    "list_requisitions": _render_requisition_table,
    "allowed_transitions": _render_allowed,
    "history": _render_history,
    # Packaging
    "packaging_preview": _render_packaging,
    "packaging_show": _render_packaging,
    # Catalog
    "catalog_list": _render_catalog,
    "catalog_set": _render_mutation,
    "catalog_deactivate": _render_mutation,
    # Init
    "init_workspace": _render_init,
}
