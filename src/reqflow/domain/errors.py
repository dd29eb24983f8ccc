"""Error taxonomy for the lifecycle engine.

Errors are raised inside the core and converted into :class:`ErrorInfo`
values at the public boundary (``transition``, ``compute_packaging``).
Callers branch on ``result.success`` and ``result.error.code``; nothing
in this module escapes the core as an exception.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorInfo(BaseModel):
    """Structured error payload carried by engine results."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class RequisitionError(Exception):
    """Base class for every failure the engine can report."""

    code = "REQUISITION_ERROR"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code, message=self.message, detail=self.detail)


class InvalidTransitionError(RequisitionError):
    """The (from, to) pair is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, allowed: list[str]) -> None:
        super().__init__(
            f"Invalid status transition: {from_status}→{to_status}. Allowed: {allowed}",
            from_status=from_status,
            to_status=to_status,
            allowed=allowed,
        )


class MissingRequirementError(RequisitionError):
    """Guard data required by an edge is absent."""

    code = "MISSING_REQUIREMENT"

    def __init__(self, requirement: str, message: str) -> None:
        super().__init__(message, requirement=requirement)
        self.requirement = requirement


class ValidationError(RequisitionError):
    """Empty or malformed item list."""

    code = "VALIDATION_FAILED"


class UnknownPackagingTypeError(RequisitionError):
    """An item does not resolve to an active catalog entry."""

    code = "UNKNOWN_PACKAGING_TYPE"

    def __init__(self, item_id: str, packaging_type: str | None) -> None:
        if packaging_type is None:
            message = (
                f"Item {item_id!r} resolves to no packaging type: "
                "catalog has no active entries"
            )
        else:
            message = f"Item {item_id!r} requests unknown packaging type {packaging_type!r}"
        super().__init__(message, item_id=item_id, packaging_type=packaging_type)
        self.item_id = item_id


class PackagingImmutableError(RequisitionError):
    """Packaging exists where it must not, or a write would alter it."""

    code = "PACKAGING_IMMUTABLE"
