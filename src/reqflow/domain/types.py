"""Requisition statuses and packaging type enums."""

from __future__ import annotations

from enum import StrEnum


class RequisitionStatus(StrEnum):
    """Authoritative requisition status. Mutated only by the state machine."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PACKAGED = "packaged"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    ASSIGNED_TO_BATCH = "assigned_to_batch"
    IN_TRANSIT = "in_transit"
    FULFILLED = "fulfilled"
    PARTIALLY_DELIVERED = "partially_delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PackagingType(StrEnum):
    """Standard packaging types, smallest first."""

    BAG_S = "bag_s"
    BOX_M = "box_m"
    BOX_L = "box_l"
    CRATE_XL = "crate_xl"
