"""Requisition repository with optimistic-concurrency writes.

A repository is bound to a single connection, so every call participates
in the caller's transaction. ``save`` is a compare-and-swap on the
``version`` column: two dispatchers racing on the same requisition cannot
both win.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from reqflow.domain.errors import PackagingImmutableError
from reqflow.domain.models import (
    Requisition,
    RequisitionItem,
    RequisitionPackaging,
    RequisitionPackagingItem,
)
from reqflow.infrastructure.database.schema import (
    requisition_items,
    requisition_packaging,
    requisition_packaging_items,
    requisitions,
    status_history,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection

_TIMESTAMP_COLUMNS = (
    "created_at",
    "approved_at",
    "packaged_at",
    "ready_for_dispatch_at",
    "assigned_to_batch_at",
    "in_transit_at",
    "delivered_at",
    "failed_at",
    "rejected_at",
    "cancelled_at",
)

# Columns a transition may change. Identity, items and created_at are fixed.
_MUTABLE_COLUMNS = (
    "status",
    "batch_id",
    "approved_by",
    "failure_reason",
    "rejection_reason",
    "cancellation_reason",
    *(c for c in _TIMESTAMP_COLUMNS if c != "created_at"),
)


class ConcurrencyConflictError(Exception):
    """The stored version moved on since the requisition was read."""

    def __init__(self, requisition_id: str, expected_version: int) -> None:
        super().__init__(
            f"Requisition {requisition_id} changed since version {expected_version} was read"
        )
        self.requisition_id = requisition_id
        self.expected_version = expected_version


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class RequisitionRepository:
    """Encapsulates SQL for requisitions, their items, packaging and history."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, requisition: Requisition) -> None:
        """Insert a new requisition together with its items."""
        row = self._row_values(requisition)
        row.update(
            id=requisition.id,
            workspace_id=requisition.workspace_id,
            facility_id=requisition.facility_id,
            requested_by=requisition.requested_by,
            notes=requisition.notes,
            created_at=_to_text(requisition.created_at),
            version=requisition.version,
        )
        self._conn.execute(insert(requisitions).values(**row))

        if requisition.items:
            self._conn.execute(
                insert(requisition_items),
                [
                    {
                        "requisition_id": requisition.id,
                        "position": pos,
                        **item.model_dump(),
                    }
                    for pos, item in enumerate(requisition.items)
                ],
            )
        if requisition.packaging is not None:
            self._store_packaging(requisition.id, requisition.packaging, requisition.packaged_at)

    def save(self, requisition: Requisition, *, expected_version: int) -> Requisition:
        """Write *requisition* back if the stored version is still *expected_version*.

        Returns the requisition carrying its new version.

        Raises:
            ConcurrencyConflictError: Another writer got there first.
            PackagingImmutableError: Stored packaging differs from the new value.
        """
        result = self._conn.execute(
            update(requisitions)
            .where(
                requisitions.c.id == requisition.id,
                requisitions.c.version == expected_version,
            )
            .values(**self._row_values(requisition), version=expected_version + 1)
        )
        if result.rowcount == 0:
            raise ConcurrencyConflictError(requisition.id, expected_version)

        if requisition.packaging is not None:
            self._store_packaging(requisition.id, requisition.packaging, requisition.packaged_at)

        return requisition.model_copy(update={"version": expected_version + 1})

    def append_history(
        self,
        requisition_id: str,
        *,
        from_status: str | None,
        to_status: str,
        timestamp: datetime,
        actor: str | None = None,
        reason: str | None = None,
    ) -> None:
        self._conn.execute(
            insert(status_history).values(
                requisition_id=requisition_id,
                from_status=str(from_status) if from_status is not None else None,
                to_status=str(to_status),
                actor=actor,
                reason=reason,
                timestamp=timestamp.isoformat(),
            )
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, requisition_id: str) -> Requisition | None:
        row = self._conn.execute(
            select(requisitions).where(requisitions.c.id == requisition_id)
        ).mappings().first()
        if row is None:
            return None
        return self._hydrate(dict(row))

    def find(
        self,
        *,
        status: str | None = None,
        workspace_id: str | None = None,
        batch_id: str | None = None,
        limit: int | None = None,
    ) -> list[Requisition]:
        stmt = select(requisitions).order_by(requisitions.c.created_at, requisitions.c.id)
        if status is not None:
            stmt = stmt.where(requisitions.c.status == status)
        if workspace_id is not None:
            stmt = stmt.where(requisitions.c.workspace_id == workspace_id)
        if batch_id is not None:
            stmt = stmt.where(requisitions.c.batch_id == batch_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self._conn.execute(stmt).mappings().all()
        return [self._hydrate(dict(row)) for row in rows]

    def history(self, requisition_id: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            select(
                status_history.c.from_status,
                status_history.c.to_status,
                status_history.c.actor,
                status_history.c.reason,
                status_history.c.timestamp,
            )
            .where(status_history.c.requisition_id == requisition_id)
            .order_by(status_history.c.id)
        ).mappings().all()
        return [dict(row) for row in rows]

    def get_packaging(self, requisition_id: str) -> RequisitionPackaging | None:
        row = self._conn.execute(
            select(requisition_packaging).where(
                requisition_packaging.c.requisition_id == requisition_id
            )
        ).mappings().first()
        if row is None:
            return None

        item_rows = self._conn.execute(
            select(requisition_packaging_items)
            .where(requisition_packaging_items.c.requisition_id == requisition_id)
            .order_by(requisition_packaging_items.c.position)
        ).mappings().all()

        return RequisitionPackaging(
            items=tuple(
                RequisitionPackagingItem.model_validate(
                    {k: v for k, v in r.items() if k not in ("requisition_id", "position")}
                )
                for r in item_rows
            ),
            total_slot_demand=row["total_slot_demand"],
            rounded_slot_demand=row["rounded_slot_demand"],
            total_weight_kg=row["total_weight_kg"],
            total_volume_m3=row["total_volume_m3"],
            item_count=row["item_count"],
            packaging_version=row["packaging_version"],
            computed_by=row["computed_by"],
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _row_values(requisition: Requisition) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for column in _MUTABLE_COLUMNS:
            value = getattr(requisition, column)
            values[column] = _to_text(value) if column.endswith("_at") else value
        values["status"] = str(requisition.status)
        return values

    def _store_packaging(
        self,
        requisition_id: str,
        packaging: RequisitionPackaging,
        packaged_at: datetime | None,
    ) -> None:
        """Insert packaging once; afterwards only an identical value is accepted."""
        existing = self.get_packaging(requisition_id)
        if existing is not None:
            if existing != packaging:
                msg = f"Packaging for {requisition_id} is final and cannot be modified"
                raise PackagingImmutableError(msg, requisition_id=requisition_id)
            return

        self._conn.execute(
            insert(requisition_packaging).values(
                requisition_id=requisition_id,
                total_slot_demand=packaging.total_slot_demand,
                rounded_slot_demand=packaging.rounded_slot_demand,
                total_weight_kg=packaging.total_weight_kg,
                total_volume_m3=packaging.total_volume_m3,
                item_count=packaging.item_count,
                packaging_version=packaging.packaging_version,
                computed_by=packaging.computed_by,
                is_final=1,
                created_at=_to_text(packaged_at) or "",
            )
        )
        self._conn.execute(
            insert(requisition_packaging_items),
            [
                {"requisition_id": requisition_id, "position": pos, **item.model_dump()}
                for pos, item in enumerate(packaging.items)
            ],
        )

    def _hydrate(self, row: dict[str, Any]) -> Requisition:
        item_rows = self._conn.execute(
            select(requisition_items)
            .where(requisition_items.c.requisition_id == row["id"])
            .order_by(requisition_items.c.position)
        ).mappings().all()
        items = tuple(
            RequisitionItem.model_validate(
                {k: v for k, v in r.items() if k not in ("requisition_id", "position")}
            )
            for r in item_rows
        )

        for column in _TIMESTAMP_COLUMNS:
            row[column] = _from_text(row[column])

        return Requisition.model_validate(
            {**row, "items": items, "packaging": self.get_packaging(row["id"])}
        )
