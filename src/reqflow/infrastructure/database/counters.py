"""Sequential requisition IDs (``REQ-0001``) from the ``id_counters`` table.

The caller owns the transaction so the counter increment commits or rolls
back together with the requisition insert it numbers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from reqflow.infrastructure.database.schema import id_counters

if TYPE_CHECKING:
    from sqlalchemy import Connection

_VALID_PREFIXES = frozenset({"REQ-"})


def next_sequential_id(conn: Connection, type_prefix: str = "REQ-") -> str:
    """Claim the next ID for *type_prefix*. Minimum four digits.

    Raises:
        ValueError: If *type_prefix* is not a known sequential prefix.
    """
    if type_prefix not in _VALID_PREFIXES:
        msg = (
            f"Unknown sequential type prefix: {type_prefix!r}. "
            f"Expected one of {sorted(_VALID_PREFIXES)}"
        )
        raise ValueError(msg)

    current: int = conn.execute(
        select(id_counters.c.next_value).where(id_counters.c.type_prefix == type_prefix)
    ).scalar_one()

    conn.execute(
        update(id_counters)
        .where(id_counters.c.type_prefix == type_prefix)
        .values(next_value=current + 1)
    )
    return f"{type_prefix}{current:04d}"
