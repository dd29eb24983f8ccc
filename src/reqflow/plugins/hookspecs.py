"""Pluggy hook specifications for requisition lifecycle events.

Downstream consumers (batch planning, fleet scheduling, notifications)
subscribe here. Events fire after the transition has been persisted,
so a hook never observes a state that was later rolled back.
"""

from __future__ import annotations

import pluggy

PROJECT_NAME = "reqflow"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class ReqflowHookSpec:
    """Hook specifications for the reqflow plugin system."""

    @hookspec
    def post_transition(
        self,
        requisition_id: str,
        from_status: str,
        to_status: str,
        timestamp: str,
    ) -> None:
        """Called after every persisted status change."""

    @hookspec
    def post_packaging_computed(
        self,
        requisition_id: str,
        rounded_slot_demand: int,
        total_weight_kg: float,
        total_volume_m3: float,
    ) -> None:
        """Called once per requisition, when its packaging is frozen."""

    @hookspec
    def post_batch_assigned(
        self,
        requisition_id: str,
        batch_id: str,
        rounded_slot_demand: int,
    ) -> None:
        """Called when a requisition joins a delivery batch."""

    @hookspec
    def post_batch_unassigned(self, requisition_id: str, batch_id: str) -> None:
        """Called when a requisition is pulled back out of a batch."""

    @hookspec
    def post_init(self, workspace_name: str) -> None:
        """Called after workspace init."""
