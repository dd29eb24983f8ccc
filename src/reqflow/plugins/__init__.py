"""Extension layer — plugin system via pluggy.

Discovery: the ``reqflow.plugins`` entry-point group plus single-file
plugins in ``.reqflow/plugins/``.
INVARIANT: Plugin failures are warnings, never errors.
"""

from reqflow.plugins.event_bus import EventBus
from reqflow.plugins.hookspecs import hookimpl
from reqflow.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager", "hookimpl"]
