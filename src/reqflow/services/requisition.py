"""RequisitionService — create, inspect and move requisitions.

Transition pipeline: LOAD → TRANSITION → PERSIST → DISPATCH

The domain state machine decides; this service only reads the current
value, hands the result to a compare-and-swap write, and fires lifecycle
events once the write has committed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pydantic

from reqflow.domain import state_machine
from reqflow.domain.errors import PackagingImmutableError, RequisitionError
from reqflow.domain.lifecycle import (
    can_cancel,
    get_allowed_transitions,
    is_terminal_state,
    required_metadata,
)
from reqflow.domain.models import Requisition, RequisitionItem, TransitionMetadata
from reqflow.domain.packaging import validate_items
from reqflow.domain.queries import (
    check_invariants,
    is_ready_for_batching,
    slot_demand_for,
    status_label,
    workflow_progress,
)
from reqflow.domain.types import RequisitionStatus
from reqflow.infrastructure.database.counters import next_sequential_id
from reqflow.infrastructure.repositories.requisitions import ConcurrencyConflictError
from reqflow.services._helpers import utc_now
from reqflow.services.base import BaseService
from reqflow.services.result import ServiceError, ServiceResult
from reqflow.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

S = RequisitionStatus


def build_items(
    raw_items: Sequence[Mapping[str, Any] | RequisitionItem],
) -> tuple[RequisitionItem, ...]:
    """Validate raw item mappings, assigning line ids (``L1``, ``L2``...) where absent.

    Raises:
        pydantic.ValidationError: A field is missing or out of range.
    """
    items: list[RequisitionItem] = []
    for pos, raw in enumerate(raw_items, start=1):
        if isinstance(raw, RequisitionItem):
            items.append(raw)
            continue
        data = dict(raw)
        data.setdefault("id", f"L{pos}")
        items.append(RequisitionItem.model_validate(data))
    return tuple(items)


def serialize_requisition(req: Requisition) -> dict[str, Any]:
    """JSON-safe view of a requisition plus its derived display fields."""
    data = req.model_dump(mode="json", exclude={"packaging"})
    data["status_label"] = status_label(req.status)
    data["progress"] = workflow_progress(req.status)
    data["ready_for_batching"] = is_ready_for_batching(req)
    data["allowed_transitions"] = get_allowed_transitions(req.status)
    if req.packaging is not None:
        data["rounded_slot_demand"] = req.packaging.rounded_slot_demand
        data["total_slot_demand"] = req.packaging.total_slot_demand
    return data


def _summary(req: Requisition) -> dict[str, Any]:
    return {
        "id": req.id,
        "status": str(req.status),
        "facility_id": req.facility_id,
        "batch_id": req.batch_id,
        "item_count": len(req.items),
        "rounded_slot_demand": (
            req.packaging.rounded_slot_demand if req.packaging is not None else None
        ),
        "version": req.version,
    }


class RequisitionService(BaseService):
    """Lifecycle operations over persisted requisitions."""

    @traced
    def create(
        self,
        items: Sequence[Mapping[str, Any] | RequisitionItem],
        *,
        facility_id: str | None = None,
        requested_by: str | None = None,
        notes: str | None = None,
        workspace_id: str | None = None,
    ) -> ServiceResult:
        """Create a pending requisition with a sequential ``REQ-`` id."""
        op = "create_requisition"
        try:
            built = build_items(items)
            validate_items(built)
        except pydantic.ValidationError as exc:
            return ServiceResult.failure(
                op,
                "INVALID_INPUT",
                "Invalid requisition item",
                errors=[e["msg"] for e in exc.errors()],
            )
        except RequisitionError as exc:
            return ServiceResult(ok=False, op=op, error=ServiceError.from_info(exc.to_info()))

        now = utc_now()
        with self._store.transaction() as txn:
            req = Requisition(
                id=next_sequential_id(txn.conn, "REQ-"),
                workspace_id=workspace_id or self._store.settings.workspace.default_workspace_id,
                items=built,
                facility_id=facility_id,
                requested_by=requested_by,
                notes=notes,
                created_at=now,
                version=1,
            )
            txn.requisitions.insert(req)
            txn.requisitions.append_history(
                req.id, from_status=None, to_status=S.PENDING, timestamp=now, actor=requested_by
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": req.id,
                "status": str(req.status),
                "item_count": len(req.items),
                "version": req.version,
            },
        )

    @traced
    def get(self, requisition_id: str) -> ServiceResult:
        op = "get_requisition"
        with self._store.transaction() as txn:
            req = txn.requisitions.get(requisition_id)
        if req is None:
            return _not_found(op, requisition_id)

        warnings = check_invariants(req)
        return ServiceResult(ok=True, op=op, data=serialize_requisition(req), warnings=warnings)

    @traced
    def list_requisitions(
        self,
        *,
        status: str | None = None,
        ready_for_batching: bool = False,
        batch_id: str | None = None,
        workspace_id: str | None = None,
        limit: int | None = None,
    ) -> ServiceResult:
        """List requisitions, optionally only those batch planning may pick up."""
        op = "list_requisitions"
        if ready_for_batching:
            status = S.READY_FOR_DISPATCH

        with self._store.transaction() as txn:
            found = txn.requisitions.find(
                status=status,
                workspace_id=workspace_id,
                batch_id=batch_id,
                limit=None if ready_for_batching else limit,
            )

        if ready_for_batching:
            found = [r for r in found if is_ready_for_batching(r)]
            if limit is not None:
                found = found[:limit]

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "items": [_summary(r) for r in found],
                "count": len(found),
                "total_rounded_slot_demand": slot_demand_for(found),
            },
        )

    @traced
    def transition(
        self,
        requisition_id: str,
        target_status: str,
        *,
        batch_id: str | None = None,
        actor: str | None = None,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> ServiceResult:
        """Move a requisition to *target_status* under optimistic concurrency.

        *expected_version* is the version the caller last read; when given,
        a requisition that moved on since then yields ``CONFLICT``.
        """
        op = "transition"
        warnings: list[str] = []

        if expected_version is None and self._store.settings.dispatch.require_expected_version:
            return ServiceResult.failure(
                op,
                "INVALID_INPUT",
                "An expected version is required for transitions in this workspace",
                requisition_id=requisition_id,
            )

        metadata = TransitionMetadata(batch_id=batch_id, actor=actor, reason=reason)
        precision = self._store.settings.packaging.slot_demand_precision

        try:
            with self._store.transaction() as txn:
                with trace_span("load"):
                    current = txn.requisitions.get(requisition_id)
                    if current is None:
                        return _not_found(op, requisition_id)
                    if expected_version is not None and current.version != expected_version:
                        raise ConcurrencyConflictError(requisition_id, expected_version)
                    catalog = txn.catalog.list_costs()

                with trace_span("state_machine") as span:
                    result = state_machine.transition(
                        current, target_status, metadata, catalog=catalog, precision=precision
                    )
                    if span:
                        span.annotate("success", result.success)
                if not result.success or result.requisition is None:
                    assert result.error is not None
                    return ServiceResult(
                        ok=False,
                        op=op,
                        error=ServiceError.from_info(result.error),
                    )

                with trace_span("persist"):
                    saved = txn.requisitions.save(
                        result.requisition, expected_version=current.version
                    )
                    txn.requisitions.append_history(
                        requisition_id,
                        from_status=current.status,
                        to_status=saved.status,
                        timestamp=result.timestamp,
                        actor=actor,
                        reason=reason,
                    )
        except ConcurrencyConflictError as exc:
            logger.info("Concurrent update lost on %s: %s", requisition_id, exc)
            return ServiceResult.failure(
                op,
                "CONFLICT",
                str(exc),
                requisition_id=requisition_id,
                expected_version=exc.expected_version,
            )
        except PackagingImmutableError as exc:
            return ServiceResult(ok=False, op=op, error=ServiceError.from_info(exc.to_info()))

        with trace_span("dispatch"):
            self._dispatch_transition_events(current, saved, result.timestamp.isoformat(), warnings)

        data: dict[str, Any] = {
            "id": saved.id,
            "from_status": str(current.status),
            "to_status": str(saved.status),
            "timestamp": result.timestamp.isoformat(),
            "version": saved.version,
        }
        if saved.batch_id:
            data["batch_id"] = saved.batch_id
        if saved.packaging is not None:
            data["rounded_slot_demand"] = saved.packaging.rounded_slot_demand
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    @traced
    def allowed_transitions(self, requisition_id: str) -> ServiceResult:
        op = "allowed_transitions"
        with self._store.transaction() as txn:
            req = txn.requisitions.get(requisition_id)
        if req is None:
            return _not_found(op, requisition_id)

        allowed = [
            {
                "status": target,
                "label": status_label(target),
                "requires": list(required_metadata(req.status, target)),
            }
            for target in get_allowed_transitions(req.status)
        ]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": req.id,
                "status": str(req.status),
                "version": req.version,
                "terminal": is_terminal_state(req.status),
                "can_cancel": can_cancel(req.status),
                "items": allowed,
            },
        )

    @traced
    def history(self, requisition_id: str) -> ServiceResult:
        op = "history"
        with self._store.transaction() as txn:
            if txn.requisitions.get(requisition_id) is None:
                return _not_found(op, requisition_id)
            rows = txn.requisitions.history(requisition_id)
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": requisition_id, "items": rows, "count": len(rows)},
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dispatch_transition_events(
        self,
        before: Requisition,
        after: Requisition,
        timestamp: str,
        warnings: list[str],
    ) -> None:
        self._dispatch_event(
            "post_transition",
            {
                "requisition_id": after.id,
                "from_status": str(before.status),
                "to_status": str(after.status),
                "timestamp": timestamp,
            },
            warnings,
        )
        if after.status == S.PACKAGED and after.packaging is not None:
            self._dispatch_event(
                "post_packaging_computed",
                {
                    "requisition_id": after.id,
                    "rounded_slot_demand": after.packaging.rounded_slot_demand,
                    "total_weight_kg": after.packaging.total_weight_kg,
                    "total_volume_m3": after.packaging.total_volume_m3,
                },
                warnings,
            )
        elif after.status == S.ASSIGNED_TO_BATCH and after.batch_id:
            self._dispatch_event(
                "post_batch_assigned",
                {
                    "requisition_id": after.id,
                    "batch_id": after.batch_id,
                    "rounded_slot_demand": (
                        after.packaging.rounded_slot_demand if after.packaging else 0
                    ),
                },
                warnings,
            )
        elif before.status == S.ASSIGNED_TO_BATCH and after.status == S.READY_FOR_DISPATCH:
            self._dispatch_event(
                "post_batch_unassigned",
                {"requisition_id": after.id, "batch_id": before.batch_id or ""},
                warnings,
            )


def _not_found(op: str, requisition_id: str) -> ServiceResult:
    return ServiceResult.failure(
        op,
        "NOT_FOUND",
        f"No requisition found with ID: {requisition_id}",
        requisition_id=requisition_id,
    )
