"""SQLite database engine, schema, and ID counters via SQLAlchemy Core."""

from reqflow.infrastructure.database.counters import next_sequential_id
from reqflow.infrastructure.database.engine import create_db_engine, init_database
from reqflow.infrastructure.database.schema import (
    event_wal,
    id_counters,
    metadata,
    packaging_slot_costs,
    requisition_items,
    requisition_packaging,
    requisition_packaging_items,
    requisitions,
    status_history,
)

__all__ = [
    "create_db_engine",
    "event_wal",
    "id_counters",
    "init_database",
    "metadata",
    "next_sequential_id",
    "packaging_slot_costs",
    "requisition_items",
    "requisition_packaging",
    "requisition_packaging_items",
    "requisitions",
    "status_history",
]
