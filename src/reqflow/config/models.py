"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults live here, reqflow.toml only holds overrides.
A fresh workspace needs only [workspace] name.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class WorkspaceConfig(BaseModel):
    """[workspace] section."""

    model_config = {"frozen": True}

    name: str = "reqflow"
    default_workspace_id: str = "default"


class PackagingConfig(BaseModel):
    """[packaging] section."""

    model_config = {"frozen": True}

    slot_demand_precision: int = Field(default=4, ge=0, le=9)
    seed_default_catalog: bool = True


class DispatchConfig(BaseModel):
    """[dispatch] section."""

    model_config = {"frozen": True}

    require_expected_version: bool = False


class EventsConfig(BaseModel):
    """[events] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    max_retries: int = Field(default=3, ge=1)
    max_workers: int = Field(default=2, ge=1)
    drain_on_close: bool = True


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    local_discovery: bool = True
    disabled: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)


class ReqflowConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    packaging: PackagingConfig = Field(default_factory=PackagingConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
