"""Rich Console factory and theme for reqflow output.

Consoles render into a StringIO buffer so ``format_result() -> str``
stays a pure function. In non-TTY environments (tests, pipes) Rich
drops color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

REQ_THEME = Theme(
    {
        "req.ok": "bold green",
        "req.error": "bold red",
        "req.warning": "bold yellow",
        "req.op": "bold cyan",
        "req.key": "dim",
        "req.id": "bold blue",
        "req.slots": "magenta",
        "req.status.open": "yellow",
        "req.status.moving": "cyan",
        "req.status.done": "green",
        "req.status.closed": "red",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "pending": "req.status.open",
    "approved": "req.status.open",
    "packaged": "req.status.moving",
    "ready_for_dispatch": "req.status.moving",
    "assigned_to_batch": "req.status.moving",
    "in_transit": "req.status.moving",
    "fulfilled": "req.status.done",
    "partially_delivered": "req.status.done",
    "failed": "req.status.closed",
    "rejected": "req.status.closed",
    "cancelled": "req.status.closed",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=REQ_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    return _STATUS_STYLES.get(status, "")
