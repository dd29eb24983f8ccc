"""AppContext — shared Click context for all commands.

Created once by the root CLI group and handed to subcommands via
``@click.pass_obj``. Opens the store lazily and centralizes result
emission (stdout/stderr routing and exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from reqflow.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from reqflow.config.settings import ReqflowSettings
    from reqflow.infrastructure.store import Store
    from reqflow.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The store is created on first access so ``--help``, ``--version`` and
    ``--examples`` never open the database.
    """

    def __init__(self, settings: ReqflowSettings) -> None:
        self.settings = settings
        self._store: Store | None = None

        from reqflow.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from reqflow.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def store(self) -> Store:
        """The workspace store (created lazily on first access)."""
        if self._store is None:
            from reqflow.infrastructure.database.engine import DATA_DIRNAME
            from reqflow.infrastructure.store import Store

            root = self.settings.root
            if self.settings.config_path is None and not (root / DATA_DIRNAME).is_dir():
                msg = f"No reqflow workspace found at {root}. Run 'reqflow init' first."
                raise click.ClickException(msg)

            self._store = Store(self.settings)
            self._store.init_event_bus(sync=self.settings.sync)
            click.get_current_context().call_on_close(self.close)
        return self._store

    def close(self) -> None:
        """Flush in-flight events and release the database."""
        if self._store is not None:
            self._store.close()
            self._store = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout, warnings to stderr (human mode only).
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
