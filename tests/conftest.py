"""Shared pytest fixtures and test helpers for reqflow tests."""

from __future__ import annotations

import logging
import re
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from reqflow.config.settings import ReqflowSettings
from reqflow.domain.models import Requisition, RequisitionItem
from reqflow.infrastructure.database.engine import init_database
from reqflow.infrastructure.store import Store

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_cli_globals() -> Generator[None]:
    """Undo what ``-v`` leaves behind: thread-wide telemetry and logging handlers."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    app_level = logging.getLogger("reqflow").level
    yield
    from reqflow.services.telemetry import disable_telemetry

    disable_telemetry()
    root.handlers = handlers
    logging.getLogger("reqflow").setLevel(app_level)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(tmp_path: Path) -> Generator[Store]:
    """Initialized workspace store with the default catalog seeded.

    Events are enabled but dispatched synchronously so tests can observe
    hook calls without waiting on the thread pool.
    """
    from reqflow.services.init import InitService

    result = InitService.init_workspace(tmp_path, name="test-depot")
    assert result.ok, result.error
    settings = ReqflowSettings.from_cli(root=tmp_path, sync=True)
    s = Store(settings)
    s.init_event_bus(sync=True)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def _isolated_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Initialize a workspace in a temp dir and chdir into it.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")`` on command
    test classes.
    """
    from reqflow.services.init import InitService

    monkeypatch.delenv("REQFLOW_CONFIG", raising=False)
    result = InitService.init_workspace(tmp_path, name="cli-depot")
    assert result.ok, result.error
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def shows_field(out: str, key: str, value: str) -> bool:
    """Whether rendered output holds a ``key: value`` field, however rich pads it."""
    return re.search(rf"\b{re.escape(key)}:\s+{re.escape(value)}", out) is not None


def make_item(item_id: str = "L1", **overrides: Any) -> RequisitionItem:
    """A requisition item that packs into a single medium box by default."""
    data: dict[str, Any] = {
        "id": item_id,
        "item_name": f"Item {item_id}",
        "quantity": 1,
        "unit_weight_kg": 10.0,
        "unit_volume_m3": 0.01,
    }
    data.update(overrides)
    return RequisitionItem(**data)


def make_requisition(**overrides: Any) -> Requisition:
    data: dict[str, Any] = {
        "id": "REQ-0001",
        "workspace_id": "default",
        "items": (make_item(),),
        "created_at": T0,
        "version": 1,
    }
    data.update(overrides)
    return Requisition(**data)


def create_requisition(store: Store, **kwargs: Any) -> dict[str, Any]:
    """Create a requisition via RequisitionService, asserting success."""
    from reqflow.services.requisition import RequisitionService

    kwargs.setdefault(
        "items",
        [{"item_name": "Gauze", "quantity": 10, "unit_weight_kg": 0.2, "unit_volume_m3": 0.001}],
    )
    items = kwargs.pop("items")
    result = RequisitionService(store).create(items, **kwargs)
    assert result.ok, result.error
    return result.data


def advance(store: Store, requisition_id: str, *targets: str, **metadata: Any) -> None:
    """Apply several transitions in order, asserting each succeeds."""
    from reqflow.services.requisition import RequisitionService

    svc = RequisitionService(store)
    for target in targets:
        kwargs = dict(metadata)
        if target == "assigned_to_batch":
            kwargs.setdefault("batch_id", "BATCH-1")
        result = svc.transition(requisition_id, target, **kwargs)
        assert result.ok, result.error
