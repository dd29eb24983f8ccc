"""Tests for the requisition command group."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from reqflow.cli import cli

GAUZE = "name=Gauze,qty=10,weight=0.2,volume=0.001"


def _create(cli_runner: CliRunner, *extra: str) -> dict:
    result = cli_runner.invoke(
        cli, ["--json", "requisition", "create", "--item", GAUZE, *extra]
    )
    assert result.exit_code == 0, result.output
    return json.loads(result.output)["data"]


def _move(cli_runner: CliRunner, *args: str) -> None:
    result = cli_runner.invoke(cli, ["requisition", "transition", *args])
    assert result.exit_code == 0, result.output


@pytest.mark.usefixtures("_isolated_workspace")
class TestCreate:
    def test_create_human(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["requisition", "create", "--item", GAUZE, "--facility", "CLINIC-3"]
        )
        assert result.exit_code == 0, result.output
        assert "create_requisition" in result.output
        assert "REQ-0001" in result.output

    def test_create_quiet(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "requisition", "create", "--item", GAUZE])
        assert result.output.strip() == "REQ-0001"

    def test_create_from_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        items = tmp_path / "items.json"
        items.write_text(
            json.dumps(
                [
                    {"name": "Saline", "qty": 4, "weight": 1.1},
                    {"item_name": "Masks", "quantity": 100, "unit_volume_m3": 0.0002},
                ]
            ),
            encoding="utf-8",
        )
        data = _create(cli_runner, "--items-file", str(items))
        assert data["item_count"] == 3

    def test_no_items(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["requisition", "create"])
        assert result.exit_code == 2
        assert "At least one --item" in result.output

    def test_unknown_item_key(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["requisition", "create", "--item", "name=X,colour=red"])
        assert result.exit_code == 2
        assert "Unknown item key" in result.output

    def test_invalid_item_value(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "requisition", "create", "--item", "name=X,qty=lots,weight=1"]
        )
        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["code"] == "INVALID_INPUT"


@pytest.mark.usefixtures("_isolated_workspace")
class TestTransition:
    def test_lifecycle(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        _move(cli_runner, "REQ-0001", "approved", "--actor", "dana")
        _move(cli_runner, "REQ-0001", "packaged")
        _move(cli_runner, "REQ-0001", "ready_for_dispatch")
        result = cli_runner.invoke(
            cli,
            [
                "--json",
                "requisition",
                "transition",
                "REQ-0001",
                "assigned_to_batch",
                "--batch",
                "B-12",
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["to_status"] == "assigned_to_batch"
        assert data["batch_id"] == "B-12"
        assert data["version"] == 5

    def test_invalid_transition_exits_1(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        result = cli_runner.invoke(cli, ["requisition", "transition", "REQ-0001", "packaged"])
        assert result.exit_code == 1
        assert "INVALID_TRANSITION" in result.output
        assert "pending→packaged" in result.output

    def test_missing_batch(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        for target in ("approved", "packaged", "ready_for_dispatch"):
            _move(cli_runner, "REQ-0001", target)
        result = cli_runner.invoke(
            cli, ["--json", "requisition", "transition", "REQ-0001", "assigned_to_batch"]
        )
        assert result.exit_code == 1
        error = json.loads(result.output)["error"]
        assert error["code"] == "MISSING_REQUIREMENT"
        assert error["detail"]["requirement"] == "batch_id"

    def test_expected_version_conflict(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        _move(cli_runner, "REQ-0001", "approved", "--expected-version", "1")
        result = cli_runner.invoke(
            cli,
            ["requisition", "transition", "REQ-0001", "cancelled", "--expected-version", "1"],
        )
        assert result.exit_code == 1
        assert "CONFLICT" in result.output

    def test_unknown_status_rejected_by_click(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["requisition", "transition", "REQ-0001", "shipped"])
        assert result.exit_code == 2

    def test_verbose_shows_spans(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        result = cli_runner.invoke(
            cli, ["-v", "requisition", "transition", "REQ-0001", "approved"]
        )
        assert result.exit_code == 0, result.output
        assert "state_machine" in result.output
        assert "persist" in result.output


@pytest.mark.usefixtures("_isolated_workspace")
class TestQueries:
    def test_show(self, cli_runner: CliRunner) -> None:
        _create(cli_runner, "--facility", "CLINIC-3", "--notes", "Monthly restock")
        result = cli_runner.invoke(cli, ["requisition", "show", "REQ-0001"])
        assert result.exit_code == 0, result.output
        assert "Pending Approval" in result.output
        assert "CLINIC-3" in result.output
        assert "Monthly restock" in result.output

    def test_show_missing(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["requisition", "show", "REQ-0404"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_list_ready_for_batching(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        _create(cli_runner)
        for target in ("approved", "packaged", "ready_for_dispatch"):
            _move(cli_runner, "REQ-0002", target)
        result = cli_runner.invoke(cli, ["-q", "requisition", "list", "--ready-for-batching"])
        assert result.output.split() == ["REQ-0002"]

        everything = cli_runner.invoke(cli, ["requisition", "list"])
        assert "2 requisitions, 1 slots reserved" in everything.output

    def test_allowed(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        result = cli_runner.invoke(cli, ["--json", "requisition", "allowed", "REQ-0001"])
        targets = [i["status"] for i in json.loads(result.output)["data"]["items"]]
        assert targets == ["approved", "rejected", "cancelled"]

    def test_history(self, cli_runner: CliRunner) -> None:
        _create(cli_runner)
        _move(cli_runner, "REQ-0001", "rejected", "--reason", "duplicate")
        result = cli_runner.invoke(cli, ["--json", "requisition", "history", "REQ-0001"])
        rows = json.loads(result.output)["data"]["items"]
        assert [r["to_status"] for r in rows] == ["pending", "rejected"]
        assert rows[1]["reason"] == "duplicate"
