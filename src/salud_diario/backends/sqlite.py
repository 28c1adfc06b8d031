"""Backend primario: tabla SQLite versionada, clave = fecha ISO."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any

from salud_diario.backends.base import BackendError, LogBackend
from salud_diario.model import DailyLog, log_from_dict, log_to_dict

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS logs (
    date TEXT PRIMARY KEY,
    id TEXT NOT NULL,
    payload TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_logs_date
ON logs(date);
"""


class SQLiteLogBackend(LogBackend):
    """Repositorio SQLite de registros diarios."""

    name = "sqlite"

    def __init__(self, db_path: Path, *, bulk_read: bool = True) -> None:
        """Create the backend.

        Args:
            db_path: SQLite database file.
            bulk_read: Read all rows with ``fetchall``; when False, scan the
                cursor row by row instead.
        """
        self._db_path = db_path
        self._bulk_read = bulk_read
        self._opened = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    async def open(self) -> None:
        """Create the schema if needed and check the stored version."""
        if self._opened:
            return
        try:
            await asyncio.to_thread(self._init_schema)
        except (OSError, sqlite3.Error) as exc:
            raise BackendError(f"Cannot open {self._db_path}: {exc}") from exc
        self._opened = True

    def _init_schema(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise BackendError(
                    f"Store version {version} is newer than {SCHEMA_VERSION}"
                )
            conn.executescript(SCHEMA_SQL)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()

    async def get(self, date: str) -> DailyLog | None:
        return await asyncio.to_thread(self._get, date)

    async def put(self, log: DailyLog) -> None:
        await asyncio.to_thread(self._put, log)

    async def delete(self, date: str) -> None:
        await asyncio.to_thread(self._delete, date)

    async def list_all(self) -> list[DailyLog]:
        return await asyncio.to_thread(self._list_all)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear)

    def _get(self, date: str) -> DailyLog | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM logs WHERE date = ?", (date,)
            ).fetchone()
        if row is None:
            return None
        return _row_to_log(row)

    def _put(self, log: DailyLog) -> None:
        payload = json.dumps(log_to_dict(log), ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO logs(date, id, payload) VALUES(?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    id=excluded.id,
                    payload=excluded.payload
                """,
                (log.date, log.id, payload),
            )
            conn.commit()

    def _delete(self, date: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM logs WHERE date = ?", (date,))
            conn.commit()

    def _list_all(self) -> list[DailyLog]:
        with self._connect() as conn:
            cur = conn.execute("SELECT payload FROM logs")
            if self._bulk_read:
                rows = cur.fetchall()
            else:
                rows = []
                row = cur.fetchone()
                while row is not None:
                    rows.append(row)
                    row = cur.fetchone()
        return [_row_to_log(row) for row in rows]

    def _clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM logs")
            conn.commit()


def _row_to_log(row: sqlite3.Row) -> DailyLog:
    try:
        raw: Any = json.loads(row["payload"])
    except json.JSONDecodeError as exc:
        raise BackendError(f"Corrupt payload: {exc}") from exc
    if not isinstance(raw, dict):
        raise BackendError("Corrupt payload: not an object")
    try:
        return log_from_dict(raw)
    except ValueError as exc:
        raise BackendError(f"Corrupt payload: {exc}") from exc
