"""Find and register lifecycle plugins.

Two sources feed one pluggy manager:

* distributions advertising the ``reqflow.plugins`` entry-point group;
* ``*.py`` files dropped into ``.reqflow/plugins/`` of a workspace.

Names in ``[plugins] disabled`` are skipped before their code is imported.
A plugin that fails to import or construct is logged and left out; it
never stops the command that triggered discovery.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from collections.abc import Iterable, Iterator
from importlib.metadata import entry_points
from pathlib import Path
from types import ModuleType

import pluggy

from reqflow.plugins.hookspecs import PROJECT_NAME, ReqflowHookSpec

ENTRY_POINT_GROUP = "reqflow.plugins"
LOCAL_PREFIX = "reqflow_local_plugin_"

_IMPL_MARKER = f"{PROJECT_NAME}_impl"

logger = logging.getLogger(__name__)


def _has_hooks(obj: object) -> bool:
    """Whether *obj* (a class or module) defines any ``@hookimpl`` callables."""
    return any(
        callable(value) and getattr(value, _IMPL_MARKER, None)
        for name, value in inspect.getmembers(obj)
        if not name.startswith("_")
    )


def _hook_classes(module: ModuleType) -> list[type]:
    """Hook-carrying classes defined in *module* itself, not imported into it."""
    return [
        cls
        for _, cls in inspect.getmembers(module, inspect.isclass)
        if cls.__module__ == module.__name__ and _has_hooks(cls)
    ]


class PluginManager:
    """Registry of lifecycle plugins plus the hook relay the event bus calls."""

    def __init__(self, *, disabled: Iterable[str] = ()) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(ReqflowHookSpec)
        self._disabled = frozenset(disabled)

    def discover_and_load(self, *, local_dir: Path | None = None) -> list[str]:
        """Register entry-point plugins, then local files from *local_dir*.

        Returns the names of every plugin registered afterwards.
        """
        self._load_entry_points()
        if local_dir is not None:
            self._load_local(local_dir)
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register *plugin* under *name* (its class name by default) unless disabled."""
        key = name or type(plugin).__name__
        if key in self._disabled:
            logger.debug("Plugin %s is disabled", key)
            return
        self._pm.register(plugin, name=key)
        logger.debug("Registered plugin %s", key)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        return [name for name, _ in self._pm.list_name_plugin()]

    # -- entry points ------------------------------------------------------

    def _load_entry_points(self) -> None:
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name in self._disabled:
                logger.debug("Plugin %s is disabled", ep.name)
                continue
            try:
                target = ep.load()
                plugin = target() if inspect.isclass(target) else target
            except Exception:
                logger.warning("Could not load plugin %s", ep.name, exc_info=True)
                continue
            self.register_plugin(plugin, name=ep.name)

    # -- local files -------------------------------------------------------

    def _load_local(self, local_dir: Path) -> None:
        if not local_dir.is_dir():
            return
        for path in sorted(local_dir.glob("*.py")):
            if path.name.startswith("_"):
                continue
            module_name = LOCAL_PREFIX + path.stem
            if module_name in self._disabled:
                logger.debug("Plugin %s is disabled", module_name)
                continue
            module = self._import_file(module_name, path)
            if module is not None:
                for name, instance in self._instances(module):
                    self.register_plugin(instance, name=name)

    @staticmethod
    def _import_file(module_name: str, path: Path) -> ModuleType | None:
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            logger.warning("Not a loadable plugin file: %s", path)
            return None
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            logger.warning("Could not load plugin file %s", path, exc_info=True)
            sys.modules.pop(module_name, None)
            return None
        return module

    @staticmethod
    def _instances(module: ModuleType) -> Iterator[tuple[str, object]]:
        """One instance per hook class; qualified names when a file holds several."""
        classes = _hook_classes(module)
        for cls in classes:
            name = module.__name__ if len(classes) == 1 else f"{module.__name__}.{cls.__name__}"
            try:
                yield name, cls()
            except Exception:
                logger.warning("Could not construct plugin %s", name, exc_info=True)
