"""Database engine setup for SQLite with WAL mode.

The store lives at ``{root}/.reqflow/reqflow.db``. SQLAlchemy Core (not
ORM) is used: the engine only ever moves whole requisition values in and
out, so identity maps and unit-of-work buy nothing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.engine import Engine

from reqflow.infrastructure.database.schema import id_counters, metadata

DATA_DIRNAME = ".reqflow"
DB_FILENAME = "reqflow.db"


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(root: Path) -> Engine:
    """Create ``.reqflow/`` under *root*, all tables, and counter rows.

    Idempotent: safe to call on an existing workspace.
    """
    data_dir = root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "plugins").mkdir(exist_ok=True)

    engine = create_db_engine(data_dir / DB_FILENAME)
    metadata.create_all(engine)

    with engine.begin() as conn:
        row = conn.execute(
            select(id_counters.c.type_prefix).where(id_counters.c.type_prefix == "REQ-")
        ).first()
        if row is None:
            conn.execute(insert(id_counters).values(type_prefix="REQ-", next_value=1))
    return engine
