"""Per-call span trees for ``--verbose`` runs.

Service methods wrapped in :func:`traced` open a root span; the steps
inside them (load, state machine, persist, dispatch) open children with
:func:`trace_span`. When the call returns a :class:`ServiceResult` the
root span is tagged with what the call did to which requisition and the
tree is attached as ``meta["telemetry"]``.

Disabled by default; the cost when off is one ContextVar read.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from reqflow.services.result import ServiceResult

_enabled: ContextVar[bool] = ContextVar("reqflow_telemetry_enabled", default=False)
_active: ContextVar[Span | None] = ContextVar("reqflow_active_span", default=None)

# Result fields worth lifting onto the root span.
_OUTCOME_KEYS = ("from_status", "to_status", "batch_id", "version")

logger = structlog.get_logger("reqflow.telemetry")


@dataclass
class Span:
    name: str
    annotations: dict[str, Any] = field(default_factory=dict)
    children: list[Span] = field(default_factory=list)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    @property
    def duration_ms(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def end(self) -> None:
        if self.finished is None:
            self.finished = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        tree: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            tree["annotations"] = dict(self.annotations)
        if self.children:
            tree["children"] = [child.to_dict() for child in self.children]
        return tree


@contextmanager
def trace_span(name: str, **annotations: Any) -> Iterator[Span | None]:
    """Time a step of the enclosing traced call.

    Yields None when telemetry is off or no traced call is running, so
    callers guard annotations with ``if span:``.
    """
    parent = _active.get() if _enabled.get() else None
    if parent is None:
        yield None
        return

    span = Span(name, annotations=dict(annotations))
    parent.children.append(span)
    token = _active.set(span)
    try:
        yield span
    finally:
        span.end()
        _active.reset(token)


def tag_outcome(span: Span, result: ServiceResult) -> None:
    """Annotate *span* with the requisition and transition a result describes."""
    data = result.data
    detail = result.error.detail if result.error is not None else {}
    requisition_id = (
        data.get("requisition_id") or data.get("id") or detail.get("requisition_id")
    )
    if requisition_id:
        span.annotate("requisition_id", requisition_id)
    for key in _OUTCOME_KEYS:
        if data.get(key) is not None:
            span.annotate(key, data[key])
    if result.error is not None:
        span.annotate("error", result.error.code)


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Wrap a service method in a root span and attach the tree to its result."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)

        root = Span(func.__qualname__)
        token = _active.set(root)
        result: Any = None
        raised = True
        try:
            result = func(*args, **kwargs)
            raised = False
        finally:
            root.end()
            _active.reset(token)
            is_result = isinstance(result, ServiceResult)
            if is_result:
                tag_outcome(root, result)
            logger.debug(
                "service.span",
                span=root.name,
                duration_ms=round(root.duration_ms, 2),
                steps=[child.name for child in root.children],
                ok=not raised and (result.ok if is_result else True),
                **root.annotations,
            )

        if is_result:
            meta = {**(result.meta or {}), "telemetry": root.to_dict()}
            return result.model_copy(update={"meta": meta})  # type: ignore[return-value]
        return result  # type: ignore[no-any-return]

    return wrapper


def enable_telemetry() -> None:
    """Turn span collection on for this context (``--verbose``)."""
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)
