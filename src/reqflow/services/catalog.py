"""CatalogService — maintain packaging slot-cost reference data.

Catalog edits affect future packaging computations only. Packaging that
was already frozen on a requisition keeps the figures it was computed with.
"""

from __future__ import annotations

import pydantic

from reqflow.domain.models import PackagingSlotCost
from reqflow.services._helpers import now_iso
from reqflow.services.base import BaseService
from reqflow.services.result import ServiceResult
from reqflow.services.telemetry import traced


class CatalogService(BaseService):
    """List, set and deactivate packaging types."""

    @traced
    def list_costs(self, *, include_inactive: bool = False) -> ServiceResult:
        with self._store.transaction() as txn:
            costs = txn.catalog.list_costs(include_inactive=include_inactive)
        items = [c.model_dump(mode="json") for c in costs]
        return ServiceResult(
            ok=True,
            op="catalog_list",
            data={"items": items, "count": len(items)},
        )

    @traced
    def upsert(
        self,
        packaging_type: str,
        *,
        slot_cost: float,
        max_weight_kg: float,
        max_volume_m3: float,
        description: str = "",
        is_active: bool = True,
    ) -> ServiceResult:
        """Create or replace the catalog row for *packaging_type*."""
        op = "catalog_set"
        try:
            cost = PackagingSlotCost(
                packaging_type=packaging_type,
                slot_cost=slot_cost,
                max_weight_kg=max_weight_kg,
                max_volume_m3=max_volume_m3,
                description=description,
                is_active=is_active,
            )
        except pydantic.ValidationError as exc:
            return ServiceResult.failure(
                op,
                "INVALID_INPUT",
                f"Invalid catalog entry for {packaging_type!r}",
                errors=[e["msg"] for e in exc.errors()],
            )

        with self._store.transaction() as txn:
            created = txn.catalog.get(packaging_type) is None
            txn.catalog.upsert(cost, updated_at=now_iso())

        return ServiceResult(
            ok=True,
            op=op,
            data={**cost.model_dump(mode="json"), "created": created},
        )

    @traced
    def deactivate(self, packaging_type: str) -> ServiceResult:
        op = "catalog_deactivate"
        with self._store.transaction() as txn:
            found = txn.catalog.set_active(packaging_type, False, updated_at=now_iso())
        if not found:
            return ServiceResult.failure(
                op,
                "NOT_FOUND",
                f"No packaging type found: {packaging_type}",
                packaging_type=packaging_type,
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"packaging_type": packaging_type, "is_active": False},
        )
