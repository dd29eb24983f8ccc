"""Derived predicates over requisitions.

Nothing here is cached on the entity. Every answer is recomputed from the
current value so a late packaging or batch edit can never leave it stale.
"""

from __future__ import annotations

from collections.abc import Iterable

from reqflow.domain.lifecycle import BATCH_STATES, PACKAGING_REQUIRED_STATES
from reqflow.domain.models import Requisition
from reqflow.domain.types import RequisitionStatus

S = RequisitionStatus

STATUS_LABELS: dict[str, str] = {
    S.PENDING: "Pending Approval",
    S.APPROVED: "Approved",
    S.REJECTED: "Rejected",
    S.PACKAGED: "Packaged",
    S.READY_FOR_DISPATCH: "Ready for Dispatch",
    S.ASSIGNED_TO_BATCH: "Assigned to Batch",
    S.IN_TRANSIT: "In Transit",
    S.FULFILLED: "Fulfilled",
    S.PARTIALLY_DELIVERED: "Partially Delivered",
    S.FAILED: "Failed",
    S.CANCELLED: "Cancelled",
}

FORWARD_PATH: tuple[str, ...] = (
    S.PENDING,
    S.APPROVED,
    S.PACKAGED,
    S.READY_FOR_DISPATCH,
    S.ASSIGNED_TO_BATCH,
    S.IN_TRANSIT,
    S.FULFILLED,
)


def status_label(status: str) -> str:
    return STATUS_LABELS.get(str(status), str(status))


def workflow_progress(status: str) -> float:
    """Fraction of the forward path completed, 0.0 to 1.0.

    Partial delivery counts as complete; rejected, cancelled and failed
    requisitions report 0.0 since they left the forward path.
    """
    status = str(status)
    if status == S.PARTIALLY_DELIVERED:
        return 1.0
    if status not in FORWARD_PATH:
        return 0.0
    return round(FORWARD_PATH.index(status) / (len(FORWARD_PATH) - 1), 4)


def is_ready_for_batching(requisition: Requisition) -> bool:
    """True iff ready for dispatch, finally packaged, and not yet in a batch."""
    return (
        requisition.status == S.READY_FOR_DISPATCH
        and requisition.packaging is not None
        and requisition.packaging.is_final
        and not requisition.batch_id
    )


def check_invariants(requisition: Requisition) -> list[str]:
    """Return violations of the status / optional-field invariant (empty if sound)."""
    problems: list[str] = []
    status = requisition.status
    if status in PACKAGING_REQUIRED_STATES and requisition.packaging is None:
        problems.append(f"status {status} requires packaging but none is attached")
    if status in (S.PENDING, S.APPROVED) and requisition.packaging is not None:
        problems.append(f"status {status} must not carry packaging")
    if requisition.batch_id and status not in BATCH_STATES and status not in (
        S.FULFILLED,
        S.PARTIALLY_DELIVERED,
        S.FAILED,
    ):
        problems.append(f"status {status} must not carry batch_id")
    if status == S.ASSIGNED_TO_BATCH and not requisition.batch_id:
        problems.append("status assigned_to_batch requires batch_id")
    return problems


def slot_demand_for(requisitions: Iterable[Requisition]) -> int:
    """Total reserved slot-units across requisitions that carry packaging."""
    return sum(r.packaging.rounded_slot_demand for r in requisitions if r.packaging is not None)
