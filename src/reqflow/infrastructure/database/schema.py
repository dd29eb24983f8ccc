"""SQLAlchemy Core table definitions for the reqflow store.

Timestamps are stored as ISO 8601 text. Packaging tables are insert-only:
the repository never issues UPDATE or DELETE against them.
"""

from __future__ import annotations

from sqlalchemy import (
    REAL,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

requisitions = Table(
    "requisitions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("workspace_id", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("facility_id", Text),
    Column("requested_by", Text),
    Column("notes", Text),
    Column("batch_id", Text),
    Column("created_at", Text, nullable=False),
    Column("approved_at", Text),
    Column("approved_by", Text),
    Column("packaged_at", Text),
    Column("ready_for_dispatch_at", Text),
    Column("assigned_to_batch_at", Text),
    Column("in_transit_at", Text),
    Column("delivered_at", Text),
    Column("failed_at", Text),
    Column("failure_reason", Text),
    Column("rejected_at", Text),
    Column("rejection_reason", Text),
    Column("cancelled_at", Text),
    Column("cancellation_reason", Text),
    # Optimistic concurrency counter, bumped on every successful save.
    Column("version", Integer, nullable=False, default=1, server_default="1"),
)

requisition_items = Table(
    "requisition_items",
    metadata,
    Column("requisition_id", Text, ForeignKey("requisitions.id"), nullable=False),
    Column("id", Text, nullable=False),
    Column("position", Integer, nullable=False),
    Column("item_name", Text, nullable=False),
    Column("item_ref", Text),
    Column("quantity", Integer, nullable=False),
    Column("unit_weight_kg", REAL),
    Column("unit_volume_m3", REAL),
    Column("packaging_type", Text),
    UniqueConstraint("requisition_id", "id"),
)

requisition_packaging = Table(
    "requisition_packaging",
    metadata,
    Column("requisition_id", Text, ForeignKey("requisitions.id"), primary_key=True),
    Column("total_slot_demand", REAL, nullable=False),
    Column("rounded_slot_demand", Integer, nullable=False),
    Column("total_weight_kg", REAL, nullable=False),
    Column("total_volume_m3", REAL, nullable=False),
    Column("item_count", Integer, nullable=False),
    Column("packaging_version", Integer, nullable=False, default=1, server_default="1"),
    Column("computed_by", Text, nullable=False),
    Column("is_final", Integer, nullable=False, default=1, server_default="1"),
    Column("created_at", Text, nullable=False),
)

requisition_packaging_items = Table(
    "requisition_packaging_items",
    metadata,
    Column(
        "requisition_id",
        Text,
        ForeignKey("requisition_packaging.requisition_id"),
        nullable=False,
    ),
    Column("position", Integer, nullable=False),
    Column("requisition_item_id", Text, nullable=False),
    Column("item_name", Text, nullable=False),
    Column("packaging_type", Text, nullable=False),
    Column("package_count", Integer, nullable=False),
    Column("slot_cost", REAL, nullable=False),
    Column("slot_demand", REAL, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("weight_kg", REAL, nullable=False),
    Column("volume_m3", REAL, nullable=False),
    UniqueConstraint("requisition_id", "requisition_item_id"),
)

packaging_slot_costs = Table(
    "packaging_slot_costs",
    metadata,
    Column("packaging_type", Text, primary_key=True),
    Column("slot_cost", REAL, nullable=False),
    Column("max_weight_kg", REAL, nullable=False),
    Column("max_volume_m3", REAL, nullable=False),
    Column("description", Text, default="", server_default=""),
    Column("is_active", Integer, nullable=False, default=1, server_default="1"),
    Column("updated_at", Text, nullable=False),
)

status_history = Table(
    "status_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("requisition_id", Text, ForeignKey("requisitions.id"), nullable=False),
    Column("from_status", Text),
    Column("to_status", Text, nullable=False),
    Column("actor", Text),
    Column("reason", Text),
    Column("timestamp", Text, nullable=False),
)

event_wal = Table(
    "event_wal",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("hook_name", Text, nullable=False),
    Column("payload", Text, nullable=False),  # JSON
    Column("status", Text, nullable=False),
    Column("error", Text),
    Column("retries", Integer, default=0, server_default="0"),
    Column("created", Text, nullable=False),
    Column("completed", Text),
)

id_counters = Table(
    "id_counters",
    metadata,
    Column("type_prefix", Text, primary_key=True),
    Column("next_value", Integer, nullable=False, default=1, server_default="1"),
)

Index("ix_requisitions_status", requisitions.c.status)
Index("ix_requisitions_workspace", requisitions.c.workspace_id)
Index("ix_requisitions_batch", requisitions.c.batch_id)
Index("ix_status_history_requisition", status_history.c.requisition_id)
Index("ix_event_wal_status", event_wal.c.status)
