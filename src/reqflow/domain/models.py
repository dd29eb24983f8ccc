"""Requisition entities and engine result values.

Every model here is frozen. The state machine never edits a requisition in
place; it returns a new value built with ``model_copy(update=...)``, which
is what makes a failed persistence write safe to retry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from reqflow.domain.errors import ErrorInfo
from reqflow.domain.types import RequisitionStatus

# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class PackagingSlotCost(BaseModel):
    """Catalog row: slot cost and single-package capacity for a packaging type."""

    model_config = {"frozen": True}

    packaging_type: str
    slot_cost: float = Field(gt=0)
    max_weight_kg: float = Field(gt=0)
    max_volume_m3: float = Field(gt=0)
    description: str = ""
    is_active: bool = True


# ---------------------------------------------------------------------------
# Requisition aggregate
# ---------------------------------------------------------------------------


class RequisitionItem(BaseModel):
    """A requested line item, owned by its requisition."""

    model_config = {"frozen": True}

    id: str
    item_name: str
    item_ref: str | None = None
    quantity: int = Field(gt=0)
    unit_weight_kg: float | None = Field(default=None, ge=0)
    unit_volume_m3: float | None = Field(default=None, ge=0)
    packaging_type: str | None = None

    @property
    def total_weight_kg(self) -> float:
        return (self.unit_weight_kg or 0.0) * self.quantity

    @property
    def total_volume_m3(self) -> float:
        return (self.unit_volume_m3 or 0.0) * self.quantity


class RequisitionPackagingItem(BaseModel):
    """One requisition item bound to a packaging type and its slot demand."""

    model_config = {"frozen": True}

    requisition_item_id: str
    item_name: str
    packaging_type: str
    package_count: int
    slot_cost: float
    slot_demand: float
    quantity: int
    weight_kg: float
    volume_m3: float


class RequisitionPackaging(BaseModel):
    """The frozen planning artifact. There is no draft form of this type."""

    model_config = {"frozen": True}

    items: tuple[RequisitionPackagingItem, ...]
    total_slot_demand: float
    rounded_slot_demand: int
    total_weight_kg: float
    total_volume_m3: float
    item_count: int
    packaging_version: int = 1
    computed_by: str = "system"
    is_final: Literal[True] = True


class Requisition(BaseModel):
    """Aggregate root.

    ``status`` determines which optional fields may be populated; see
    :func:`reqflow.domain.queries.check_invariants`. ``version`` belongs
    to the persistence boundary and is carried through transitions untouched.
    """

    model_config = {"frozen": True}

    id: str
    workspace_id: str
    status: RequisitionStatus = RequisitionStatus.PENDING
    items: tuple[RequisitionItem, ...] = ()
    facility_id: str | None = None
    requested_by: str | None = None
    notes: str | None = None
    packaging: RequisitionPackaging | None = None
    batch_id: str | None = None
    created_at: datetime | None = None

    approved_at: datetime | None = None
    approved_by: str | None = None
    packaged_at: datetime | None = None
    ready_for_dispatch_at: datetime | None = None
    assigned_to_batch_at: datetime | None = None
    in_transit_at: datetime | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    version: int = 0


# ---------------------------------------------------------------------------
# Transition request and results
# ---------------------------------------------------------------------------


class TransitionMetadata(BaseModel):
    """Optional data accompanying a transition request.

    Unknown keys are ignored so UI callers can pass their own context.
    """

    model_config = {"frozen": True, "extra": "ignore"}

    batch_id: str | None = None
    actor: str | None = None
    reason: str | None = None


class TransitionResult(BaseModel):
    """Outcome of :func:`reqflow.domain.state_machine.transition`."""

    model_config = {"frozen": True}

    success: bool
    from_status: RequisitionStatus
    to_status: str
    timestamp: datetime
    error: ErrorInfo | None = None
    requisition: Requisition | None = None


class PackagingComputationResult(BaseModel):
    """Outcome of a standalone packaging computation."""

    model_config = {"frozen": True}

    success: bool
    packaging: RequisitionPackaging | None = None
    error: ErrorInfo | None = None

    def summary(self) -> dict[str, Any]:
        """Aggregate figures without the per-item breakdown."""
        if self.packaging is None:
            return {}
        return self.packaging.model_dump(exclude={"items"})
