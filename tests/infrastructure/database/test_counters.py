"""Tests for sequential requisition IDs."""

import pytest
from sqlalchemy.engine import Engine

from reqflow.infrastructure.database.counters import next_sequential_id


class TestNextSequentialId:
    def test_sequence(self, db_engine: Engine) -> None:
        with db_engine.begin() as conn:
            ids = [next_sequential_id(conn) for _ in range(3)]
        assert ids == ["REQ-0001", "REQ-0002", "REQ-0003"]

    def test_rollback_releases_the_number(self, db_engine: Engine) -> None:
        with pytest.raises(RuntimeError), db_engine.begin() as conn:
            next_sequential_id(conn)
            raise RuntimeError("insert failed")
        with db_engine.begin() as conn:
            assert next_sequential_id(conn) == "REQ-0001"

    def test_unknown_prefix(self, db_engine: Engine) -> None:
        with db_engine.begin() as conn, pytest.raises(ValueError, match="Unknown sequential"):
            next_sequential_id(conn, "BATCH-")
