"""PackagingService — standalone previews and frozen packaging lookups.

A preview never touches a requisition: it runs the same calculator the
``approved → packaged`` transition runs, against the workspace catalog,
so UI callers can show expected slot demand before committing.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import pydantic

from reqflow.domain.models import RequisitionItem
from reqflow.domain.packaging import compute_packaging
from reqflow.domain.queries import status_label
from reqflow.services.base import BaseService
from reqflow.services.requisition import build_items
from reqflow.services.result import ServiceError, ServiceResult
from reqflow.services.telemetry import traced


class PackagingService(BaseService):
    """Packaging previews and reads."""

    @traced
    def preview(
        self,
        requisition_id: str | None = None,
        *,
        items: Sequence[Mapping[str, Any]] | None = None,
    ) -> ServiceResult:
        """Compute packaging for a stored requisition's items or for ad-hoc *items*.

        Exactly one of *requisition_id* and *items* must be given. The data
        payload mirrors the calculator result: ``success``, ``packaging``
        and ``error``.
        """
        op = "packaging_preview"
        if (requisition_id is None) == (items is None):
            return ServiceResult.failure(
                op, "INVALID_INPUT", "Pass either a requisition ID or items, not both"
            )

        preview_items: tuple[RequisitionItem, ...] = ()
        if items is not None:
            try:
                preview_items = build_items(items)
            except pydantic.ValidationError as exc:
                return ServiceResult.failure(
                    op,
                    "INVALID_INPUT",
                    "Invalid item",
                    errors=[e["msg"] for e in exc.errors()],
                )

        with self._store.transaction() as txn:
            catalog = txn.catalog.list_costs()
            if requisition_id is not None:
                req = txn.requisitions.get(requisition_id)
                if req is None:
                    return ServiceResult.failure(
                        op,
                        "NOT_FOUND",
                        f"No requisition found with ID: {requisition_id}",
                        requisition_id=requisition_id,
                    )
                preview_items = req.items

        result = compute_packaging(
            preview_items,
            catalog,
            computed_by="preview",
            precision=self._store.settings.packaging.slot_demand_precision,
        )
        data = result.model_dump(mode="json")
        if requisition_id is not None:
            data["requisition_id"] = requisition_id
        if not result.success:
            assert result.error is not None
            return ServiceResult(
                ok=False,
                op=op,
                data=data,
                error=ServiceError.from_info(result.error),
            )
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def show(self, requisition_id: str) -> ServiceResult:
        """The frozen packaging attached to a requisition."""
        op = "packaging_show"
        with self._store.transaction() as txn:
            req = txn.requisitions.get(requisition_id)
        if req is None:
            return ServiceResult.failure(
                op,
                "NOT_FOUND",
                f"No requisition found with ID: {requisition_id}",
                requisition_id=requisition_id,
            )
        if req.packaging is None:
            return ServiceResult.failure(
                op,
                "NOT_FOUND",
                f"Requisition {requisition_id} has no packaging yet "
                f"(status: {status_label(req.status)})",
                requisition_id=requisition_id,
                status=str(req.status),
            )

        data = req.packaging.model_dump(mode="json")
        data.update(
            requisition_id=req.id,
            status=str(req.status),
            packaged_at=req.packaged_at.isoformat() if req.packaged_at else None,
        )
        return ServiceResult(ok=True, op=op, data=data)
