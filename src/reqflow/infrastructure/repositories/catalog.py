"""Packaging slot-cost catalog repository."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert

from reqflow.domain.models import PackagingSlotCost
from reqflow.infrastructure.database.schema import packaging_slot_costs

if TYPE_CHECKING:
    from sqlalchemy import Connection


class CatalogRepository:
    """Read and maintain the reference data the packaging calculator consumes."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def list_costs(self, *, include_inactive: bool = False) -> list[PackagingSlotCost]:
        stmt = select(packaging_slot_costs).order_by(
            packaging_slot_costs.c.slot_cost, packaging_slot_costs.c.packaging_type
        )
        if not include_inactive:
            stmt = stmt.where(packaging_slot_costs.c.is_active == 1)
        return [self._to_model(dict(row)) for row in self._conn.execute(stmt).mappings()]

    def get(self, packaging_type: str) -> PackagingSlotCost | None:
        row = self._conn.execute(
            select(packaging_slot_costs).where(
                packaging_slot_costs.c.packaging_type == packaging_type
            )
        ).mappings().first()
        return self._to_model(dict(row)) if row is not None else None

    def upsert(self, cost: PackagingSlotCost, *, updated_at: str) -> None:
        values = self._to_row(cost, updated_at)
        stmt = insert(packaging_slot_costs).values(**values)
        self._conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[packaging_slot_costs.c.packaging_type],
                set_={k: stmt.excluded[k] for k in values if k != "packaging_type"},
            )
        )

    def seed(self, costs: Iterable[PackagingSlotCost], *, updated_at: str) -> int:
        """Insert rows for packaging types not yet present. Returns rows added."""
        added = 0
        for cost in costs:
            result = self._conn.execute(
                insert(packaging_slot_costs)
                .values(**self._to_row(cost, updated_at))
                .on_conflict_do_nothing(index_elements=[packaging_slot_costs.c.packaging_type])
            )
            added += result.rowcount
        return added

    def set_active(self, packaging_type: str, active: bool, *, updated_at: str) -> bool:
        """Toggle a row's ``is_active`` flag. False if the type is unknown."""
        result = self._conn.execute(
            update(packaging_slot_costs)
            .where(packaging_slot_costs.c.packaging_type == packaging_type)
            .values(is_active=int(active), updated_at=updated_at)
        )
        return result.rowcount > 0

    @staticmethod
    def _to_row(cost: PackagingSlotCost, updated_at: str) -> dict[str, object]:
        return {**cost.model_dump(), "is_active": int(cost.is_active), "updated_at": updated_at}

    @staticmethod
    def _to_model(row: dict[str, object]) -> PackagingSlotCost:
        row.pop("updated_at", None)
        row["is_active"] = bool(row["is_active"])
        return PackagingSlotCost.model_validate(row)
