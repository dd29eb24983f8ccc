"""Tests for RequisitionService — create, transition, list, history."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import select

from reqflow.config.settings import ReqflowSettings
from reqflow.infrastructure.database.schema import event_wal
from reqflow.infrastructure.store import Store
from reqflow.services.catalog import CatalogService
from reqflow.services.packaging import PackagingService
from reqflow.services.requisition import RequisitionService, build_items
from tests.conftest import advance, create_requisition


def _hooks(store: Store) -> list[str]:
    with store.engine.connect() as conn:
        return list(
            conn.execute(select(event_wal.c.hook_name).order_by(event_wal.c.id)).scalars()
        )


class TestBuildItems:
    def test_assigns_line_ids(self) -> None:
        items = build_items(
            [
                {"item_name": "Gauze", "quantity": 2, "unit_weight_kg": 0.1},
                {"id": "X", "item_name": "Tape", "quantity": 1, "unit_volume_m3": 0.001},
            ]
        )
        assert [i.id for i in items] == ["L1", "X"]


class TestCreate:
    def test_creates_pending_requisition(self, store: Store) -> None:
        data = create_requisition(store, facility_id="CLINIC-3", requested_by="dana")
        assert data == {"id": "REQ-0001", "status": "pending", "item_count": 1, "version": 1}

        got = RequisitionService(store).get("REQ-0001")
        assert got.ok
        assert got.data["facility_id"] == "CLINIC-3"
        assert got.data["workspace_id"] == "default"
        assert got.data["status_label"] == "Pending Approval"
        assert got.data["allowed_transitions"] == ["approved", "rejected", "cancelled"]
        assert got.warnings == []

    def test_sequential_ids(self, store: Store) -> None:
        assert create_requisition(store)["id"] == "REQ-0001"
        assert create_requisition(store)["id"] == "REQ-0002"

    def test_creation_recorded_in_history(self, store: Store) -> None:
        create_requisition(store, requested_by="dana")
        rows = RequisitionService(store).history("REQ-0001").data["items"]
        assert rows[0]["from_status"] is None
        assert rows[0]["to_status"] == "pending"
        assert rows[0]["actor"] == "dana"

    def test_empty_items_rejected(self, store: Store) -> None:
        result = RequisitionService(store).create([])
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "VALIDATION_FAILED"

    def test_bad_quantity_rejected(self, store: Store) -> None:
        result = RequisitionService(store).create(
            [{"item_name": "Gauze", "quantity": 0, "unit_weight_kg": 1}]
        )
        assert result.error is not None
        assert result.error.code == "INVALID_INPUT"

    def test_item_without_measures_rejected(self, store: Store) -> None:
        result = RequisitionService(store).create([{"item_name": "Mystery", "quantity": 1}])
        assert result.error is not None
        assert result.error.code == "VALIDATION_FAILED"


class TestTransition:
    def test_happy_path(self, store: Store) -> None:
        create_requisition(store)
        svc = RequisitionService(store)

        approved = svc.transition("REQ-0001", "approved", actor="dana")
        assert approved.ok
        assert approved.data["from_status"] == "pending"
        assert approved.data["to_status"] == "approved"
        assert approved.data["version"] == 2

        packaged = svc.transition("REQ-0001", "packaged")
        assert packaged.ok
        assert packaged.data["rounded_slot_demand"] == 1

        advance(store, "REQ-0001", "ready_for_dispatch", "assigned_to_batch")
        got = svc.get("REQ-0001").data
        assert got["status"] == "assigned_to_batch"
        assert got["batch_id"] == "BATCH-1"
        assert got["approved_by"] == "dana"
        assert got["version"] == 5

    def test_invalid_transition(self, store: Store) -> None:
        create_requisition(store)
        result = RequisitionService(store).transition("REQ-0001", "packaged")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "INVALID_TRANSITION"
        assert RequisitionService(store).get("REQ-0001").data["version"] == 1

    def test_missing_batch_id(self, store: Store) -> None:
        create_requisition(store)
        advance(store, "REQ-0001", "approved", "packaged", "ready_for_dispatch")
        result = RequisitionService(store).transition("REQ-0001", "assigned_to_batch")
        assert result.error is not None
        assert result.error.code == "MISSING_REQUIREMENT"

    def test_not_found(self, store: Store) -> None:
        result = RequisitionService(store).transition("REQ-0404", "approved")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"

    def test_stale_expected_version_conflicts(self, store: Store) -> None:
        create_requisition(store)
        svc = RequisitionService(store)
        assert svc.transition("REQ-0001", "approved", expected_version=1).ok

        stale = svc.transition("REQ-0001", "cancelled", expected_version=1)
        assert not stale.ok
        assert stale.error is not None
        assert stale.error.code == "CONFLICT"
        assert svc.get("REQ-0001").data["status"] == "approved"

    def test_packaging_uses_workspace_catalog(self, store: Store) -> None:
        CatalogService(store).upsert(
            "bag_s", slot_cost=0.25, max_weight_kg=5, max_volume_m3=0.02, is_active=False
        )
        create_requisition(store)
        advance(store, "REQ-0001", "approved", "packaged")
        shown = PackagingService(store).show("REQ-0001").data
        assert shown["items"][0]["packaging_type"] == "box_m"

    def test_catalog_edit_does_not_touch_frozen_packaging(self, store: Store) -> None:
        create_requisition(store)
        advance(store, "REQ-0001", "approved", "packaged")
        before = RequisitionService(store).get("REQ-0001").data["total_slot_demand"]
        CatalogService(store).upsert("bag_s", slot_cost=3.0, max_weight_kg=5, max_volume_m3=0.02)
        advance(store, "REQ-0001", "ready_for_dispatch")
        assert RequisitionService(store).get("REQ-0001").data["total_slot_demand"] == before

    def test_history_records_every_step(self, store: Store) -> None:
        create_requisition(store)
        advance(store, "REQ-0001", "approved", "cancelled", reason="budget freeze")
        rows = RequisitionService(store).history("REQ-0001").data["items"]
        assert [r["to_status"] for r in rows] == ["pending", "approved", "cancelled"]
        assert rows[-1]["reason"] == "budget freeze"

    def test_events_fired(self, store: Store) -> None:
        create_requisition(store)
        advance(
            store,
            "REQ-0001",
            "approved",
            "packaged",
            "ready_for_dispatch",
            "assigned_to_batch",
            "ready_for_dispatch",
        )
        assert _hooks(store) == [
            "post_init",
            "post_transition",
            "post_transition",
            "post_packaging_computed",
            "post_transition",
            "post_transition",
            "post_batch_assigned",
            "post_transition",
            "post_batch_unassigned",
        ]

    def test_failed_transition_fires_nothing(self, store: Store) -> None:
        create_requisition(store)
        RequisitionService(store).transition("REQ-0001", "fulfilled")
        assert _hooks(store) == ["post_init"]


class TestRequiredExpectedVersion:
    @pytest.fixture
    def strict_store(self, store: Store, tmp_path: Path) -> Store:
        config = tmp_path / "reqflow.toml"
        config.write_text(
            config.read_text(encoding="utf-8")
            + "\n[dispatch]\nrequire_expected_version = true\n",
            encoding="utf-8",
        )
        settings = ReqflowSettings.from_cli(root=tmp_path, sync=True)
        store._settings = settings
        return store

    def test_version_required(self, strict_store: Store) -> None:
        create_requisition(strict_store)
        svc = RequisitionService(strict_store)
        result = svc.transition("REQ-0001", "approved")
        assert result.error is not None
        assert result.error.code == "INVALID_INPUT"
        assert svc.transition("REQ-0001", "approved", expected_version=1).ok


class TestQueries:
    def test_list_and_ready_for_batching(self, store: Store) -> None:
        for _ in range(3):
            create_requisition(store)
        advance(store, "REQ-0001", "approved", "packaged", "ready_for_dispatch")
        advance(store, "REQ-0002", "approved", "packaged", "ready_for_dispatch")
        advance(store, "REQ-0002", "assigned_to_batch")
        svc = RequisitionService(store)

        everything = svc.list_requisitions()
        assert everything.data["count"] == 3

        ready = svc.list_requisitions(ready_for_batching=True)
        assert [r["id"] for r in ready.data["items"]] == ["REQ-0001"]
        assert ready.data["total_rounded_slot_demand"] == 1

        batched = svc.list_requisitions(batch_id="BATCH-1")
        assert [r["id"] for r in batched.data["items"]] == ["REQ-0002"]

        pending = svc.list_requisitions(status="pending", limit=5)
        assert [r["id"] for r in pending.data["items"]] == ["REQ-0003"]

    def test_allowed_transitions(self, store: Store) -> None:
        create_requisition(store)
        advance(store, "REQ-0001", "approved", "packaged", "ready_for_dispatch")
        data = RequisitionService(store).allowed_transitions("REQ-0001").data
        assert data["status"] == "ready_for_dispatch"
        assert data["can_cancel"] is True
        assert data["terminal"] is False
        assert data["items"] == [
            {"status": "assigned_to_batch", "label": "Assigned to Batch", "requires": ["batch_id"]},
            {"status": "cancelled", "label": "Cancelled", "requires": []},
        ]

    def test_terminal_status(self, store: Store) -> None:
        create_requisition(store)
        advance(store, "REQ-0001", "rejected")
        data = RequisitionService(store).allowed_transitions("REQ-0001").data
        assert data["terminal"] is True
        assert data["can_cancel"] is False
        assert data["items"] == []

    @pytest.mark.parametrize("method", ["get", "allowed_transitions", "history"])
    def test_not_found(self, store: Store, method: str) -> None:
        result = getattr(RequisitionService(store), method)("REQ-0404")
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"
