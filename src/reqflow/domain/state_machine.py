"""Requisition state machine — the single entry point for status changes.

``transition`` is a synchronous, side-effect-free function over the value
it is given. It never mutates the input, never performs I/O, and never
assumes exclusive access: persisting the returned value under optimistic
concurrency is the caller's job.

Steps per call:

1. Look up ``(status, target)`` in the transition table.
2. Check required metadata and the packaging-availability guard.
3. Run the rule's effect (packaging computation, batch assignment, ...).
4. Stamp the target's lifecycle timestamp if it is not already set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import pydantic

from reqflow.domain.errors import (
    InvalidTransitionError,
    MissingRequirementError,
    RequisitionError,
    ValidationError,
)
from reqflow.domain.lifecycle import (
    STATUS_TIMESTAMP_FIELDS,
    TransitionContext,
    find_rule,
    get_allowed_transitions,
    requires_packaging,
)
from reqflow.domain.models import (
    PackagingSlotCost,
    Requisition,
    TransitionMetadata,
    TransitionResult,
)
from reqflow.domain.packaging import DEFAULT_SLOT_DEMAND_PRECISION
from reqflow.domain.types import RequisitionStatus

logger = logging.getLogger(__name__)

MetadataInput = TransitionMetadata | Mapping[str, Any] | None


def transition(
    requisition: Requisition,
    target_status: str,
    metadata: MetadataInput = None,
    *,
    catalog: Iterable[PackagingSlotCost] | None = None,
    now: datetime | None = None,
    precision: int = DEFAULT_SLOT_DEMAND_PRECISION,
) -> TransitionResult:
    """Attempt to move *requisition* to *target_status*.

    Args:
        requisition: Current value, as read from the repository.
        target_status: Desired status.
        metadata: Optional ``batch_id``, ``actor``, ``reason``.
        catalog: Packaging catalog for the ``approved → packaged`` edge.
            ``None`` uses the built-in default catalog.
        now: Clock override; defaults to the current UTC time.
        precision: Decimal places kept on slot demand figures.

    Returns:
        A :class:`TransitionResult`. Failures set ``success=False`` and
        ``error``; the input requisition is untouched either way.
    """
    timestamp = now or datetime.now(UTC)
    target = str(target_status)

    try:
        ctx = TransitionContext(
            metadata=_coerce_metadata(metadata),
            now=timestamp,
            catalog=tuple(catalog) if catalog is not None else None,
            precision=precision,
        )
        updated = _apply(requisition, target, ctx)
    except RequisitionError as exc:
        logger.debug(
            "Transition %s %s→%s rejected: %s",
            requisition.id,
            requisition.status,
            target,
            exc.code,
        )
        return TransitionResult(
            success=False,
            from_status=requisition.status,
            to_status=target,
            timestamp=timestamp,
            error=exc.to_info(),
        )

    return TransitionResult(
        success=True,
        from_status=requisition.status,
        to_status=target,
        timestamp=timestamp,
        requisition=updated,
    )


def _coerce_metadata(metadata: MetadataInput) -> TransitionMetadata:
    if metadata is None:
        return TransitionMetadata()
    if isinstance(metadata, TransitionMetadata):
        return metadata
    try:
        fields = dict(metadata)
    except (TypeError, ValueError) as exc:
        msg = f"Transition metadata must be a mapping, got {type(metadata).__name__}"
        raise ValidationError(msg, errors=[str(exc)]) from exc
    try:
        return TransitionMetadata.model_validate(fields)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Malformed transition metadata",
            errors=[e["msg"] for e in exc.errors()],
        ) from exc


def _apply(requisition: Requisition, target: str, ctx: TransitionContext) -> Requisition:
    current = requisition.status
    rule = find_rule(current, target)
    if rule is None:
        raise InvalidTransitionError(str(current), target, get_allowed_transitions(current))

    for key in rule.requires:
        if not getattr(ctx.metadata, key, None):
            raise MissingRequirementError(key, f"Transition {current}→{target} requires {key}")

    if (
        rule.target != RequisitionStatus.PACKAGED
        and requires_packaging(rule.target)
        and requisition.packaging is None
    ):
        raise MissingRequirementError(
            "packaging",
            f"Transition {current}→{target} requires computed packaging; requisition has none",
        )

    updates: dict[str, Any] = rule.effect(requisition, ctx) if rule.effect else {}
    updates["status"] = rule.target

    stamp_field = STATUS_TIMESTAMP_FIELDS.get(rule.target)
    if stamp_field is not None and getattr(requisition, stamp_field) is None:
        updates[stamp_field] = ctx.now

    return requisition.model_copy(update=updates)
