"""Requisition transition table and pure status queries.

The table is authoritative: any (from, to) pair not listed is invalid.
Guarded effects sit on the rule that owns them, so the one edge that
computes packaging (``approved → packaged``) is visible right here.

Forward path::

    pending → approved → packaged → ready_for_dispatch → assigned_to_batch
            → in_transit → {fulfilled, partially_delivered, failed}

Early exits: ``pending → rejected`` and ``cancelled`` from pending,
approved, packaged, and ready_for_dispatch. ``assigned_to_batch →
ready_for_dispatch`` is the only reverse edge (unassignment).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from reqflow.domain.errors import PackagingImmutableError
from reqflow.domain.models import PackagingSlotCost, Requisition, TransitionMetadata
from reqflow.domain.packaging import (
    DEFAULT_CATALOG,
    DEFAULT_SLOT_DEMAND_PRECISION,
    calculate_packaging,
)
from reqflow.domain.types import RequisitionStatus

S = RequisitionStatus


@dataclass(frozen=True)
class TransitionContext:
    """Inputs available to a rule's effect during one transition call."""

    metadata: TransitionMetadata
    now: datetime
    catalog: tuple[PackagingSlotCost, ...] | None = None
    precision: int = DEFAULT_SLOT_DEMAND_PRECISION


Effect = Callable[[Requisition, TransitionContext], dict[str, Any]]


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    Attributes:
        source: Status the requisition must currently hold.
        target: Status it moves to.
        requires: Metadata keys that must be present (else
            ``MissingRequirementError``).
        effect: Returns the field updates the edge attaches. May raise a
            ``RequisitionError`` to reject the transition.
    """

    source: RequisitionStatus
    target: RequisitionStatus
    requires: tuple[str, ...] = ()
    effect: Effect | None = None


# --- Effects ---


def _record_approval(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"approved_by": ctx.metadata.actor}


def _record_rejection(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"rejection_reason": ctx.metadata.reason}


def _record_cancellation(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"cancellation_reason": ctx.metadata.reason}


def _record_failure(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"failure_reason": ctx.metadata.reason}


def _compute_packaging(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    """Run the calculator exactly once, on the approved → packaged edge."""
    if req.packaging is not None:
        msg = (
            f"Requisition {req.id} already carries packaging before being packaged; "
            "packaging is computed once and never recomputed"
        )
        raise PackagingImmutableError(msg, requisition_id=req.id)
    packaging = calculate_packaging(
        req.items,
        DEFAULT_CATALOG if ctx.catalog is None else ctx.catalog,
        computed_by=ctx.metadata.actor or "system",
        precision=ctx.precision,
    )
    return {"packaging": packaging}


def _assign_batch(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"batch_id": ctx.metadata.batch_id}


def _unassign_batch(req: Requisition, ctx: TransitionContext) -> dict[str, Any]:
    return {"batch_id": None}


# --- Transition table ---

TRANSITION_TABLE: tuple[TransitionRule, ...] = (
    TransitionRule(S.PENDING, S.APPROVED, effect=_record_approval),
    TransitionRule(S.PENDING, S.REJECTED, effect=_record_rejection),
    TransitionRule(S.PENDING, S.CANCELLED, effect=_record_cancellation),
    TransitionRule(S.APPROVED, S.PACKAGED, effect=_compute_packaging),
    TransitionRule(S.APPROVED, S.CANCELLED, effect=_record_cancellation),
    TransitionRule(S.PACKAGED, S.READY_FOR_DISPATCH),
    TransitionRule(S.PACKAGED, S.CANCELLED, effect=_record_cancellation),
    TransitionRule(
        S.READY_FOR_DISPATCH, S.ASSIGNED_TO_BATCH, requires=("batch_id",), effect=_assign_batch
    ),
    TransitionRule(S.READY_FOR_DISPATCH, S.CANCELLED, effect=_record_cancellation),
    TransitionRule(S.ASSIGNED_TO_BATCH, S.IN_TRANSIT),
    TransitionRule(S.ASSIGNED_TO_BATCH, S.READY_FOR_DISPATCH, effect=_unassign_batch),
    TransitionRule(S.IN_TRANSIT, S.FULFILLED),
    TransitionRule(S.IN_TRANSIT, S.PARTIALLY_DELIVERED),
    TransitionRule(S.IN_TRANSIT, S.FAILED, effect=_record_failure),
)

_RULES: dict[tuple[str, str], TransitionRule] = {
    (str(r.source), str(r.target)): r for r in TRANSITION_TABLE
}

REQUISITION_TRANSITIONS: dict[str, list[str]] = {
    str(status): [str(r.target) for r in TRANSITION_TABLE if r.source == status]
    for status in RequisitionStatus
}

TERMINAL_STATES: frozenset[str] = frozenset(
    status for status, targets in REQUISITION_TRANSITIONS.items() if not targets
)

CANCELLABLE_STATES: frozenset[str] = frozenset(
    status for status, targets in REQUISITION_TRANSITIONS.items() if S.CANCELLED in targets
)

# Statuses in which packaging must be present on the requisition.
PACKAGING_REQUIRED_STATES: frozenset[str] = frozenset(
    {
        S.PACKAGED,
        S.READY_FOR_DISPATCH,
        S.ASSIGNED_TO_BATCH,
        S.IN_TRANSIT,
        S.FULFILLED,
        S.PARTIALLY_DELIVERED,
    }
)

# Statuses in which batch_id may be populated.
BATCH_STATES: frozenset[str] = frozenset({S.ASSIGNED_TO_BATCH, S.IN_TRANSIT})

# Lifecycle timestamp stamped by the transition that reaches each status.
STATUS_TIMESTAMP_FIELDS: dict[str, str] = {
    S.APPROVED: "approved_at",
    S.PACKAGED: "packaged_at",
    S.READY_FOR_DISPATCH: "ready_for_dispatch_at",
    S.ASSIGNED_TO_BATCH: "assigned_to_batch_at",
    S.IN_TRANSIT: "in_transit_at",
    S.FULFILLED: "delivered_at",
    S.PARTIALLY_DELIVERED: "delivered_at",
    S.FAILED: "failed_at",
    S.REJECTED: "rejected_at",
    S.CANCELLED: "cancelled_at",
}


def find_rule(current: str, target: str) -> TransitionRule | None:
    """Return the table row for ``current → target``, or None."""
    return _RULES.get((str(current), str(target)))


def is_valid_transition(
    current: str,
    target: str,
    transitions: dict[str, list[str]] = REQUISITION_TRANSITIONS,
) -> bool:
    """Check if transitioning from *current* to *target* is allowed."""
    allowed = transitions.get(str(current), [])
    return str(target) in allowed


def get_allowed_transitions(status: str) -> list[str]:
    """Targets reachable from *status* in one step (empty for unknown statuses)."""
    return list(REQUISITION_TRANSITIONS.get(str(status), []))


def is_terminal_state(status: str) -> bool:
    return str(status) in TERMINAL_STATES


def can_cancel(status: str) -> bool:
    return str(status) in CANCELLABLE_STATES


def requires_packaging(status: str) -> bool:
    return str(status) in PACKAGING_REQUIRED_STATES


def required_metadata(current: str, target: str) -> tuple[str, ...]:
    """Metadata keys the ``current → target`` edge needs; empty if none or invalid."""
    rule = find_rule(current, target)
    return rule.requires if rule is not None else ()
