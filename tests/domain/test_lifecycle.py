"""Tests for the transition table and status predicates."""

from __future__ import annotations

import pytest

from reqflow.domain.lifecycle import (
    CANCELLABLE_STATES,
    REQUISITION_TRANSITIONS,
    TERMINAL_STATES,
    TRANSITION_TABLE,
    can_cancel,
    find_rule,
    get_allowed_transitions,
    is_terminal_state,
    is_valid_transition,
    required_metadata,
    requires_packaging,
)
from reqflow.domain.types import RequisitionStatus

S = RequisitionStatus


class TestTransitionTable:
    def test_every_status_has_an_entry(self) -> None:
        assert set(REQUISITION_TRANSITIONS) == {s.value for s in RequisitionStatus}

    def test_forward_path(self) -> None:
        path = [
            "pending",
            "approved",
            "packaged",
            "ready_for_dispatch",
            "assigned_to_batch",
            "in_transit",
            "fulfilled",
        ]
        for current, target in zip(path, path[1:], strict=False):
            assert is_valid_transition(current, target), f"{current} → {target}"

    def test_single_reverse_edge(self) -> None:
        assert is_valid_transition("assigned_to_batch", "ready_for_dispatch")
        assert not is_valid_transition("in_transit", "assigned_to_batch")
        assert not is_valid_transition("packaged", "approved")

    def test_no_skipping(self) -> None:
        assert not is_valid_transition("pending", "packaged")
        assert not is_valid_transition("approved", "ready_for_dispatch")

    def test_same_status_is_invalid(self) -> None:
        for status in RequisitionStatus:
            assert not is_valid_transition(status, status)

    def test_edge_count(self) -> None:
        assert len(TRANSITION_TABLE) == 14
        assert len({(r.source, r.target) for r in TRANSITION_TABLE}) == 14

    def test_custom_transition_map(self) -> None:
        assert is_valid_transition("a", "b", {"a": ["b"]})
        assert not is_valid_transition("b", "a", {"a": ["b"]})


class TestPredicates:
    def test_terminal_states(self) -> None:
        assert TERMINAL_STATES == {
            "fulfilled",
            "partially_delivered",
            "failed",
            "rejected",
            "cancelled",
        }

    def test_terminal_states_have_no_outgoing_rows(self) -> None:
        for status in RequisitionStatus:
            if is_terminal_state(status):
                assert not [r for r in TRANSITION_TABLE if r.source == status]

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("pending", True),
            ("approved", True),
            ("packaged", True),
            ("ready_for_dispatch", True),
            ("assigned_to_batch", False),
            ("in_transit", False),
            ("fulfilled", False),
        ],
    )
    def test_can_cancel(self, status: str, expected: bool) -> None:
        assert can_cancel(status) is expected

    def test_cancellable_states(self) -> None:
        assert CANCELLABLE_STATES == {"pending", "approved", "packaged", "ready_for_dispatch"}

    def test_requires_packaging(self) -> None:
        assert not requires_packaging("pending")
        assert not requires_packaging("approved")
        assert requires_packaging("packaged")
        assert requires_packaging("in_transit")
        assert requires_packaging("partially_delivered")
        assert not requires_packaging("cancelled")

    def test_allowed_transitions(self) -> None:
        assert get_allowed_transitions("pending") == ["approved", "rejected", "cancelled"]
        assert get_allowed_transitions("in_transit") == [
            "fulfilled",
            "partially_delivered",
            "failed",
        ]
        assert get_allowed_transitions("fulfilled") == []
        assert get_allowed_transitions("bogus") == []

    def test_allowed_transitions_returns_copy(self) -> None:
        get_allowed_transitions("pending").append("fulfilled")
        assert "fulfilled" not in REQUISITION_TRANSITIONS["pending"]

    def test_required_metadata(self) -> None:
        assert required_metadata("ready_for_dispatch", "assigned_to_batch") == ("batch_id",)
        assert required_metadata("pending", "approved") == ()
        assert required_metadata("pending", "fulfilled") == ()

    def test_find_rule(self) -> None:
        rule = find_rule("approved", "packaged")
        assert rule is not None
        assert rule.effect is not None
        assert find_rule("pending", "packaged") is None
