"""Tests for configuration section models."""

from __future__ import annotations

import pydantic
import pytest

from reqflow.config.models import PackagingConfig, ReqflowConfig


class TestDefaults:
    def test_empty_config_is_complete(self) -> None:
        cfg = ReqflowConfig()
        assert cfg.workspace.name == "reqflow"
        assert cfg.workspace.default_workspace_id == "default"
        assert cfg.packaging.slot_demand_precision == 4
        assert cfg.packaging.seed_default_catalog is True
        assert cfg.dispatch.require_expected_version is False
        assert cfg.events.enabled is True
        assert cfg.events.max_retries == 3
        assert cfg.events.drain_on_close is True
        assert cfg.plugins.disabled == []

    def test_sparse_override(self) -> None:
        cfg = ReqflowConfig.model_validate(
            {"workspace": {"name": "north-depot"}, "packaging": {"slot_demand_precision": 2}}
        )
        assert cfg.workspace.name == "north-depot"
        assert cfg.workspace.default_workspace_id == "default"
        assert cfg.packaging.slot_demand_precision == 2
        assert cfg.events.max_workers == 2


class TestValidation:
    @pytest.mark.parametrize("precision", [-1, 10])
    def test_precision_bounds(self, precision: int) -> None:
        with pytest.raises(pydantic.ValidationError):
            PackagingConfig(slot_demand_precision=precision)

    def test_frozen(self) -> None:
        cfg = ReqflowConfig()
        with pytest.raises(pydantic.ValidationError):
            cfg.workspace.name = "changed"  # type: ignore[misc]

    def test_retries_must_be_positive(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ReqflowConfig.model_validate({"events": {"max_retries": 0}})
