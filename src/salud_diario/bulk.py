"""Borrado masivo: todo o por rango de fechas."""

from __future__ import annotations

import logging

from salud_diario.dates import parse_iso
from salud_diario.storage import LogStorage

logger = logging.getLogger(__name__)


async def clear_range(storage: LogStorage, from_iso: str, to_iso: str) -> int:
    """Delete records with ``from_iso <= date <= to_iso``.

    The backends have no range delete, so this lists everything, clears the
    store and re-inserts the records outside the range.

    Returns:
        Number of records removed.

    Raises:
        ValueError: If a bound is not an ISO date.
    """
    parse_iso(from_iso)
    parse_iso(to_iso)

    logs = await storage.list_all()
    keep = [log for log in logs if not (from_iso <= log.date <= to_iso)]
    removed = len(logs) - len(keep)
    if removed == 0:
        return 0

    await storage.clear()
    for log in keep:
        await storage.put(log)
    logger.info("Cleared %d record(s) from %s to %s", removed, from_iso, to_iso)
    return removed


async def clear_all(storage: LogStorage) -> None:
    """Truncate the store. Callers must confirm with the user first."""
    await storage.clear()
    logger.info("Cleared all records")
