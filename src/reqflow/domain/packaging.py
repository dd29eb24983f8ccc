"""Packaging calculator — maps requisition items onto shipping slot-units.

Pure and deterministic: the same ``(items, catalog)`` always yields an
identical :class:`RequisitionPackaging`. No knowledge of workflow state.

Per item:

1. Resolve the packaging type (explicit ``item.packaging_type``, otherwise
   the smallest active type whose single package holds the item's total
   weight and volume, otherwise the largest active type).
2. Fractional package demand is the binding constraint,
   ``max(weight / max_weight_kg, volume / max_volume_m3)``.
3. Slot demand is ``package demand × slot_cost``.

Rounding to whole slots happens once, on the aggregate, so per-item
ceiling drift never over-reserves capacity.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from reqflow.domain.errors import RequisitionError, UnknownPackagingTypeError, ValidationError
from reqflow.domain.models import (
    PackagingComputationResult,
    PackagingSlotCost,
    RequisitionItem,
    RequisitionPackaging,
    RequisitionPackagingItem,
)
from reqflow.domain.types import PackagingType

DEFAULT_SLOT_DEMAND_PRECISION = 4

DEFAULT_CATALOG: tuple[PackagingSlotCost, ...] = (
    PackagingSlotCost(
        packaging_type=PackagingType.BAG_S.value,
        slot_cost=0.25,
        max_weight_kg=5,
        max_volume_m3=0.02,
        description="Small bag - lightweight items, documents",
    ),
    PackagingSlotCost(
        packaging_type=PackagingType.BOX_M.value,
        slot_cost=0.5,
        max_weight_kg=15,
        max_volume_m3=0.05,
        description="Medium box - standard supplies",
    ),
    PackagingSlotCost(
        packaging_type=PackagingType.BOX_L.value,
        slot_cost=1.0,
        max_weight_kg=30,
        max_volume_m3=0.12,
        description="Large box - bulk supplies",
    ),
    PackagingSlotCost(
        packaging_type=PackagingType.CRATE_XL.value,
        slot_cost=2.0,
        max_weight_kg=100,
        max_volume_m3=0.5,
        description="Extra large crate - heavy equipment",
    ),
)


def _size_key(cost: PackagingSlotCost) -> tuple[float, str]:
    return (cost.slot_cost, cost.packaging_type)


def build_catalog_index(catalog: Iterable[PackagingSlotCost]) -> dict[str, PackagingSlotCost]:
    """Index active catalog rows by packaging type, smallest first.

    Raises:
        ValidationError: If two active rows share a packaging type.
    """
    active: dict[str, PackagingSlotCost] = {}
    for cost in catalog:
        if not cost.is_active:
            continue
        if cost.packaging_type in active:
            msg = f"Duplicate active catalog entry for packaging type {cost.packaging_type!r}"
            raise ValidationError(msg, packaging_type=cost.packaging_type)
        active[cost.packaging_type] = cost
    return {c.packaging_type: c for c in sorted(active.values(), key=_size_key)}


def validate_items(items: Sequence[RequisitionItem]) -> None:
    """Reject item lists that cannot be packaged."""
    if not items:
        raise ValidationError("Requisition has no items to package", item_count=0)

    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValidationError(f"Duplicate requisition item id {item.id!r}", item_id=item.id)
        seen.add(item.id)
        if not (item.unit_weight_kg or item.unit_volume_m3):
            raise ValidationError(
                f"Item {item.id!r} has neither weight nor volume and cannot be sized",
                item_id=item.id,
            )


def package_demand(weight_kg: float, volume_m3: float, cost: PackagingSlotCost) -> float:
    """Fractional packages needed; whichever of weight or volume binds wins."""
    return max(weight_kg / cost.max_weight_kg, volume_m3 / cost.max_volume_m3)


def select_packaging_type(
    item: RequisitionItem,
    index: dict[str, PackagingSlotCost],
) -> PackagingSlotCost:
    """Resolve the catalog entry an item is packed into.

    Raises:
        UnknownPackagingTypeError: Explicit type not in the active catalog,
            or the active catalog is empty.
    """
    if item.packaging_type is not None:
        cost = index.get(item.packaging_type)
        if cost is None:
            raise UnknownPackagingTypeError(item.id, item.packaging_type)
        return cost

    if not index:
        raise UnknownPackagingTypeError(item.id, None)

    weight = item.total_weight_kg
    volume = item.total_volume_m3
    for cost in index.values():
        if weight <= cost.max_weight_kg and volume <= cost.max_volume_m3:
            return cost
    # Nothing holds the item in one package: use the largest and split.
    return list(index.values())[-1]


def compute_item_packaging(
    item: RequisitionItem,
    index: dict[str, PackagingSlotCost],
    *,
    precision: int = DEFAULT_SLOT_DEMAND_PRECISION,
) -> RequisitionPackagingItem:
    """Bind a single item to its packaging type and slot demand."""
    cost = select_packaging_type(item, index)
    weight = item.total_weight_kg
    volume = item.total_volume_m3
    packages = package_demand(weight, volume, cost)

    return RequisitionPackagingItem(
        requisition_item_id=item.id,
        item_name=item.item_name,
        packaging_type=cost.packaging_type,
        package_count=max(math.ceil(round(packages, precision)), 1),
        slot_cost=cost.slot_cost,
        slot_demand=round(packages * cost.slot_cost, precision),
        quantity=item.quantity,
        weight_kg=round(weight, precision),
        volume_m3=round(volume, precision),
    )


def calculate_packaging(
    items: Sequence[RequisitionItem],
    catalog: Iterable[PackagingSlotCost],
    *,
    computed_by: str = "system",
    precision: int = DEFAULT_SLOT_DEMAND_PRECISION,
) -> RequisitionPackaging:
    """Compute the packaging plan, raising on invalid input.

    Raises:
        ValidationError: Empty or malformed item list.
        UnknownPackagingTypeError: An item resolves to no active catalog entry.
    """
    validate_items(items)
    index = build_catalog_index(catalog)

    packaged = tuple(compute_item_packaging(item, index, precision=precision) for item in items)

    total_slot_demand = round(math.fsum(p.slot_demand for p in packaged), precision)
    return RequisitionPackaging(
        items=packaged,
        total_slot_demand=total_slot_demand,
        rounded_slot_demand=math.ceil(total_slot_demand),
        total_weight_kg=round(math.fsum(p.weight_kg for p in packaged), precision),
        total_volume_m3=round(math.fsum(p.volume_m3 for p in packaged), precision),
        item_count=len(packaged),
        computed_by=computed_by,
    )


def compute_packaging(
    items: Sequence[RequisitionItem],
    catalog: Iterable[PackagingSlotCost] | None = None,
    *,
    computed_by: str = "system",
    precision: int = DEFAULT_SLOT_DEMAND_PRECISION,
) -> PackagingComputationResult:
    """Public boundary of the calculator: failures come back as values.

    A *catalog* of ``None`` falls back to :data:`DEFAULT_CATALOG`.
    """
    try:
        packaging = calculate_packaging(
            items,
            DEFAULT_CATALOG if catalog is None else catalog,
            computed_by=computed_by,
            precision=precision,
        )
    except RequisitionError as exc:
        return PackagingComputationResult(success=False, error=exc.to_info())
    return PackagingComputationResult(success=True, packaging=packaging)
