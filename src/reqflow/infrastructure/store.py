"""Store — the persistence boundary the lifecycle engine is driven through.

The Store is the single dependency injected into every service. It owns
the database engine and the plugin event bus. :meth:`Store.transaction`
yields repositories bound to one connection, so a requisition write, its
packaging insert and its history row commit or roll back together.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from reqflow.infrastructure.database.engine import init_database
from reqflow.infrastructure.repositories.catalog import CatalogRepository
from reqflow.infrastructure.repositories.requisitions import RequisitionRepository

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from reqflow.config.settings import ReqflowSettings
    from reqflow.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class StoreTransaction:
    """Repositories sharing one open transaction."""

    conn: Connection
    requisitions: RequisitionRepository = field(init=False)
    catalog: CatalogRepository = field(init=False)

    def __post_init__(self) -> None:
        self.requisitions = RequisitionRepository(self.conn)
        self.catalog = CatalogRepository(self.conn)


class Store:
    """Repository access and event dispatch for one workspace root.

    Created once per CLI invocation (lazily, by ``AppContext``).
    """

    def __init__(self, settings: ReqflowSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(self.root)
        self._event_bus: EventBus | None = None

    @property
    def root(self) -> Path:
        return self._settings.root

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def settings(self) -> ReqflowSettings:
        return self._settings

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if not initialized or disabled)."""
        return self._event_bus

    def init_event_bus(self, *, sync: bool = False) -> None:
        """Discover plugins and wire up the WAL-backed event bus.

        No-op when ``[events] enabled = false``.
        """
        events = self._settings.events
        if not events.enabled:
            return

        from reqflow.infrastructure.database.engine import DATA_DIRNAME
        from reqflow.plugins.event_bus import EventBus
        from reqflow.plugins.manager import PluginManager

        plugins = self._settings.plugins
        pm = PluginManager(disabled=plugins.disabled)
        local_dir = self.root / DATA_DIRNAME / "plugins" if plugins.local_discovery else None
        loaded = pm.discover_and_load(local_dir=local_dir)
        logger.debug("Event bus plugins: %s", loaded)

        self._event_bus = EventBus(
            self._engine,
            pm,
            sync=sync,
            max_retries=events.max_retries,
            max_workers=events.max_workers,
        )

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Open a transaction; commits on success, rolls back on any exception.

        Usage::

            with store.transaction() as txn:
                req = txn.requisitions.get("REQ-0001")
                txn.requisitions.save(new, expected_version=req.version)
        """
        with self._engine.begin() as conn:
            yield StoreTransaction(conn=conn)

    def close(self) -> None:
        """Settle events, replaying undelivered ones, and release the engine."""
        bus, self._event_bus = self._event_bus, None
        try:
            if bus is not None:
                bus.close(drain=self._settings.events.drain_on_close)
        finally:
            self._engine.dispose()
