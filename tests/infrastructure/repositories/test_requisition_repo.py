"""Tests for RequisitionRepository persistence and optimistic concurrency."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.engine import Engine

from reqflow.domain.errors import PackagingImmutableError
from reqflow.domain.packaging import DEFAULT_CATALOG, calculate_packaging
from reqflow.domain.state_machine import transition
from reqflow.domain.types import RequisitionStatus
from reqflow.infrastructure.repositories.requisitions import (
    ConcurrencyConflictError,
    RequisitionRepository,
)
from tests.conftest import T0, make_item, make_requisition

S = RequisitionStatus


def _insert(db_engine: Engine, **overrides: object) -> None:
    with db_engine.begin() as conn:
        RequisitionRepository(conn).insert(make_requisition(**overrides))


class TestInsertAndGet:
    def test_round_trip(self, db_engine: Engine) -> None:
        items = (
            make_item("L1", item_ref="SKU-1"),
            make_item("L2", quantity=3, unit_weight_kg=None, packaging_type="box_l"),
        )
        _insert(db_engine, items=items, facility_id="F-9", notes="urgent")
        with db_engine.connect() as conn:
            req = RequisitionRepository(conn).get("REQ-0001")
        assert req is not None
        assert req.items == items
        assert req.facility_id == "F-9"
        assert req.created_at == T0
        assert req.status == S.PENDING
        assert req.packaging is None

    def test_missing(self, db_engine: Engine) -> None:
        with db_engine.connect() as conn:
            assert RequisitionRepository(conn).get("REQ-9999") is None

    def test_find_filters(self, db_engine: Engine) -> None:
        _insert(db_engine, id="REQ-0001")
        _insert(db_engine, id="REQ-0002", status=S.APPROVED, created_at=T0 + timedelta(hours=1))
        _insert(db_engine, id="REQ-0003", workspace_id="west")
        with db_engine.connect() as conn:
            repo = RequisitionRepository(conn)
            assert [r.id for r in repo.find()] == ["REQ-0001", "REQ-0003", "REQ-0002"]
            assert [r.id for r in repo.find(status="approved")] == ["REQ-0002"]
            assert [r.id for r in repo.find(workspace_id="west")] == ["REQ-0003"]
            assert len(repo.find(limit=2)) == 2


class TestSave:
    def test_version_increments(self, db_engine: Engine) -> None:
        _insert(db_engine)
        with db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            current = repo.get("REQ-0001")
            assert current is not None
            result = transition(current, "approved", {"actor": "dana"}, now=T0)
            assert result.requisition is not None
            saved = repo.save(result.requisition, expected_version=current.version)
        assert saved.version == 2
        with db_engine.connect() as conn:
            stored = RequisitionRepository(conn).get("REQ-0001")
        assert stored is not None
        assert stored.version == 2
        assert stored.status == S.APPROVED
        assert stored.approved_by == "dana"

    def test_stale_version_conflicts(self, db_engine: Engine) -> None:
        _insert(db_engine)
        with db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            current = repo.get("REQ-0001")
            assert current is not None
            approved = transition(current, "approved").requisition
            assert approved is not None
            repo.save(approved, expected_version=1)

        with pytest.raises(ConcurrencyConflictError) as exc_info, db_engine.begin() as conn:
            cancelled = transition(current, "cancelled").requisition
            assert cancelled is not None
            RequisitionRepository(conn).save(cancelled, expected_version=1)
        assert exc_info.value.expected_version == 1

        with db_engine.connect() as conn:
            stored = RequisitionRepository(conn).get("REQ-0001")
        assert stored is not None
        assert stored.status == S.APPROVED


class TestPackagingPersistence:
    def test_stored_on_packaged_transition(self, db_engine: Engine) -> None:
        _insert(db_engine, status=S.APPROVED)
        with db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            current = repo.get("REQ-0001")
            assert current is not None
            packaged = transition(current, "packaged", now=T0).requisition
            assert packaged is not None
            repo.save(packaged, expected_version=current.version)
        with db_engine.connect() as conn:
            stored = RequisitionRepository(conn).get("REQ-0001")
        assert stored is not None
        assert stored.packaging == packaged.packaging

    def test_identical_packaging_is_accepted_on_later_saves(self, db_engine: Engine) -> None:
        packaging = calculate_packaging([make_item()], DEFAULT_CATALOG)
        _insert(db_engine, status=S.PACKAGED, packaging=packaging, packaged_at=T0)
        with db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            current = repo.get("REQ-0001")
            assert current is not None
            ready = transition(current, "ready_for_dispatch").requisition
            assert ready is not None
            repo.save(ready, expected_version=current.version)

    def test_different_packaging_is_rejected(self, db_engine: Engine) -> None:
        packaging = calculate_packaging([make_item()], DEFAULT_CATALOG)
        _insert(db_engine, status=S.PACKAGED, packaging=packaging, packaged_at=T0)
        other = calculate_packaging([make_item(quantity=9)], DEFAULT_CATALOG)
        with pytest.raises(PackagingImmutableError), db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            current = repo.get("REQ-0001")
            assert current is not None
            repo.save(current.model_copy(update={"packaging": other}), expected_version=1)


class TestHistory:
    def test_append_and_read(self, db_engine: Engine) -> None:
        _insert(db_engine)
        with db_engine.begin() as conn:
            repo = RequisitionRepository(conn)
            repo.append_history("REQ-0001", from_status=None, to_status=S.PENDING, timestamp=T0)
            repo.append_history(
                "REQ-0001",
                from_status=S.PENDING,
                to_status=S.REJECTED,
                timestamp=T0 + timedelta(minutes=1),
                actor="dana",
                reason="duplicate",
            )
        with db_engine.connect() as conn:
            rows = RequisitionRepository(conn).history("REQ-0001")
        assert [(r["from_status"], r["to_status"]) for r in rows] == [
            (None, "pending"),
            ("pending", "rejected"),
        ]
        assert rows[1]["actor"] == "dana"
        assert rows[1]["reason"] == "duplicate"
