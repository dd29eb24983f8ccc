"""Write-ahead lifecycle notifications over pluggy.

Every notification is appended to ``event_wal`` before its hook runs, so
batch planning or inventory hearing about a transition survives a crash
between the database commit and the hook call. Hooks run inline with
``sync=True``, otherwise on a small thread pool.

Undelivered rows (``pending`` or ``failed``) are replayed by
:meth:`EventBus.drain`; :meth:`EventBus.close` drains once at the end of
every session, so a consumer that was down gets caught up by the next
command that touches the workspace. A row that keeps failing is parked
as ``dead_letter`` once it has used up ``max_retries`` attempts.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from reqflow.infrastructure.database.schema import event_wal
from reqflow.services._helpers import now_iso

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from reqflow.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

_IN_FLIGHT_TIMEOUT = 30.0


class EventStatus(StrEnum):
    """Lifecycle of one ``event_wal`` row."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


_UNDELIVERED = (EventStatus.PENDING, EventStatus.FAILED)


@dataclass(frozen=True)
class _Event:
    id: int
    hook_name: str
    payload: dict[str, Any]

    @property
    def subject(self) -> str:
        """What the event is about, for log lines."""
        return str(
            self.payload.get("requisition_id") or self.payload.get("workspace_name") or "-"
        )


class EventBus:
    """Deliver lifecycle hooks at least once.

    Parameters:
        engine: Engine holding the ``event_wal`` table.
        plugin_manager: Source of the hook callers.
        sync: Call hooks on the dispatching thread (``--sync`` and tests).
        max_retries: Delivery attempts before a row is dead-lettered.
        max_workers: Thread pool size when not ``sync``.
    """

    def __init__(
        self,
        engine: Engine,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_retries: int = 3,
        max_workers: int = 2,
    ) -> None:
        self._engine = engine
        self._pm = plugin_manager
        self._max_retries = max_retries
        self._pool: ThreadPoolExecutor | None = None
        if not sync:
            self._pool = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="reqflow-events"
            )
        self._in_flight: list[Future[EventStatus]] = []

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> int:
        """Log the event to the WAL, then hand it to its hook. Returns the row id."""
        event = self._record(hook_name, payload)
        if self._pool is None:
            self._deliver(event)
        else:
            self._in_flight.append(self._pool.submit(self._deliver, event))
        return event.id

    def drain(self) -> list[dict[str, Any]]:
        """Redeliver every pending or failed row, oldest first, on this thread.

        Returns ``{id, hook_name, status}`` per row attempted, with the
        status the row ended up in.
        """
        self._wait_in_flight()
        return [
            {"id": event.id, "hook_name": event.hook_name, "status": str(self._deliver(event))}
            for event in self._undelivered()
        ]

    def close(self, *, drain: bool = True) -> list[dict[str, Any]]:
        """End the session: settle in-flight hooks, optionally drain, stop the pool."""
        replayed: list[dict[str, Any]] = []
        try:
            if drain:
                replayed = self.drain()
                parked = [r for r in replayed if r["status"] == EventStatus.DEAD_LETTER]
                for row in parked:
                    logger.warning(
                        "Event %d (%s) dead-lettered after %d attempts",
                        row["id"],
                        row["hook_name"],
                        self._max_retries,
                    )
        finally:
            self.shutdown()
        return replayed

    def shutdown(self) -> None:
        """Wait for in-flight hooks and release the thread pool. Idempotent."""
        self._wait_in_flight()
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    # -- WAL ---------------------------------------------------------------

    def _record(self, hook_name: str, payload: dict[str, Any]) -> _Event:
        with self._engine.begin() as conn:
            row_id = conn.execute(
                insert(event_wal).values(
                    hook_name=hook_name,
                    payload=json.dumps(payload),
                    status=EventStatus.PENDING.value,
                    retries=0,
                    created=now_iso(),
                )
            ).lastrowid
        assert row_id is not None
        return _Event(row_id, hook_name, payload)

    def _undelivered(self) -> list[_Event]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(event_wal.c.id, event_wal.c.hook_name, event_wal.c.payload)
                .where(event_wal.c.status.in_([s.value for s in _UNDELIVERED]))
                .order_by(event_wal.c.id)
            ).all()
        return [_Event(r.id, r.hook_name, json.loads(r.payload)) for r in rows]

    def _finish(self, event: _Event, error: str | None = None) -> EventStatus:
        """Store the outcome of one attempt and return the row's new status."""
        with self._engine.begin() as conn:
            if error is None:
                conn.execute(
                    update(event_wal)
                    .where(event_wal.c.id == event.id)
                    .values(status=EventStatus.COMPLETED.value, error=None, completed=now_iso())
                )
                return EventStatus.COMPLETED

            attempts = 1 + conn.execute(
                select(event_wal.c.retries).where(event_wal.c.id == event.id)
            ).scalar_one()
            parked = attempts >= self._max_retries
            status = EventStatus.DEAD_LETTER if parked else EventStatus.FAILED
            conn.execute(
                update(event_wal)
                .where(event_wal.c.id == event.id)
                .values(
                    status=status.value,
                    error=error,
                    retries=attempts,
                    completed=now_iso() if parked else None,
                )
            )
            return status

    # -- delivery ----------------------------------------------------------

    def _deliver(self, event: _Event) -> EventStatus:
        caller = getattr(self._pm.hook, event.hook_name, None)
        if caller is None:
            return self._finish(event)
        try:
            caller(**event.payload)
        except Exception as exc:
            logger.warning(
                "Hook %s for %s failed (event %d): %s",
                event.hook_name,
                event.subject,
                event.id,
                exc,
            )
            return self._finish(event, error=str(exc))
        return self._finish(event)

    def _wait_in_flight(self) -> None:
        pending, self._in_flight = self._in_flight, []
        if not pending:
            return
        _, late = wait(pending, timeout=_IN_FLIGHT_TIMEOUT)
        if late:
            logger.warning("%d event hook(s) still running after shutdown wait", len(late))
        for future in pending:
            if future.done() and future.exception() is not None:
                logger.debug("Event delivery raised", exc_info=future.exception())
