"""InitService — workspace initialization.

Creates ``reqflow.toml``, the ``.reqflow/`` data directory and database,
and seeds the default packaging catalog.
"""

from __future__ import annotations

import shutil
import tomllib
from pathlib import Path

from reqflow.config.discovery import CONFIG_FILENAME
from reqflow.config.settings import ReqflowSettings
from reqflow.domain.packaging import DEFAULT_CATALOG
from reqflow.infrastructure.database.engine import DATA_DIRNAME, DB_FILENAME
from reqflow.infrastructure.store import Store
from reqflow.services._helpers import now_iso
from reqflow.services.base import BaseService
from reqflow.services.result import ServiceResult

_TOML_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def toml_string(value: str) -> str:
    """Quote *value* as a TOML basic string."""
    out = []
    for ch in value:
        if ch in _TOML_ESCAPES:
            out.append(_TOML_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{ord(ch):04X}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def render_config(name: str, *, seed_catalog: bool = True) -> str:
    """Sparse ``reqflow.toml``: only values that differ from code defaults."""
    lines = [
        "# reqflow workspace configuration",
        "# Only overrides are stored here; defaults live in code.",
        "",
        "[workspace]",
        f"name = {toml_string(name)}",
    ]
    if not seed_catalog:
        lines += ["", "[packaging]", "seed_default_catalog = false"]
    return "\n".join(lines) + "\n"


class InitService(BaseService):
    """Bootstraps a new workspace."""

    @staticmethod
    def init_workspace(
        path: Path,
        *,
        name: str | None = None,
        seed_catalog: bool = True,
        sync: bool = True,
    ) -> ServiceResult:
        """Initialize a workspace at *path*.

        Fails with ``WORKSPACE_EXISTS`` if *path* already holds a
        ``reqflow.toml`` or ``.reqflow/`` directory. A failure part way
        through removes whatever was created so the init can be retried.
        """
        op = "init_workspace"
        path = Path(path)
        config_file = path / CONFIG_FILENAME
        data_dir = path / DATA_DIRNAME

        if config_file.exists() or data_dir.exists():
            return ServiceResult.failure(
                op,
                "WORKSPACE_EXISTS",
                f"Workspace already initialized at {path}",
                path=str(path),
            )

        workspace_name = name or path.resolve().name
        try:
            rendered = render_config(workspace_name, seed_catalog=seed_catalog)
            rendered.encode("utf-8")
            tomllib.loads(rendered)
        except (UnicodeEncodeError, tomllib.TOMLDecodeError) as exc:
            return ServiceResult.failure(
                op,
                "INVALID_INPUT",
                f"Workspace name cannot be stored in {CONFIG_FILENAME}: {exc}",
                name=workspace_name,
            )

        path.mkdir(parents=True, exist_ok=True)
        config_file.write_text(rendered, encoding="utf-8")
        warnings: list[str] = []
        try:
            seeded = InitService._bootstrap(
                path, config_file, workspace_name, seed_catalog, sync, warnings
            )
        except Exception:
            config_file.unlink(missing_ok=True)
            shutil.rmtree(data_dir, ignore_errors=True)
            raise

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "name": workspace_name,
                "path": str(path),
                "config": str(config_file),
                "database": str(data_dir / DB_FILENAME),
                "catalog_seeded": seeded,
            },
            warnings=warnings,
        )

    @staticmethod
    def _bootstrap(
        path: Path,
        config_file: Path,
        workspace_name: str,
        seed_catalog: bool,
        sync: bool,
        warnings: list[str],
    ) -> int:
        settings = ReqflowSettings.from_cli(config_path=str(config_file), root=path)
        store = Store(settings)
        try:
            seeded = 0
            if seed_catalog and settings.packaging.seed_default_catalog:
                with store.transaction() as txn:
                    seeded = txn.catalog.seed(DEFAULT_CATALOG, updated_at=now_iso())

            store.init_event_bus(sync=sync)
            InitService(store)._dispatch_event(
                "post_init", {"workspace_name": workspace_name}, warnings
            )
        finally:
            store.close()
        return seeded
