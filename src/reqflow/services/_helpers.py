"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(UTC)


def now_iso() -> str:
    """Current UTC time as standard ISO 8601 (audit trails, event WAL)."""
    return utc_now().isoformat()


def parse_item_spec(spec: str) -> dict[str, str]:
    """Split a ``key=value,key=value`` item spec into a dict.

    Examples:
        >>> parse_item_spec("name=Gauze,qty=10,weight=0.2")
        {'name': 'Gauze', 'qty': '10', 'weight': '0.2'}

    Raises:
        ValueError: A part has no ``=`` or an empty key.
    """
    fields: dict[str, str] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        key = key.strip()
        if not sep or not key:
            msg = f"Malformed item field {part!r}; expected key=value"
            raise ValueError(msg)
        fields[key] = value.strip()
    return fields
