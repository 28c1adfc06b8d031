"""Persistencia con backend primario (SQLite) y respaldo (blob JSON)."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import TypeVar

from salud_diario.backends.base import BackendError, LogBackend
from salud_diario.backends.blob import FALLBACK_KEY, BlobLogBackend
from salud_diario.backends.sqlite import SQLiteLogBackend
from salud_diario.model import DailyLog

logger = logging.getLogger(__name__)

DB_FILENAME = "salud_diario.sqlite3"

# Errors from the primary that trigger the downgrade.
PRIMARY_ERRORS: tuple[type[Exception], ...] = (BackendError, sqlite3.Error, OSError)

T = TypeVar("T")


class StorageMode(Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class LogStorage:
    """Record store that degrades from the primary to the fallback backend.

    Opening the primary is retried ``open_attempts`` times with a linear
    backoff (``open_backoff_ms * attempt``). If it never opens, or any later
    primary operation fails, the mode flips to FALLBACK for the lifetime of
    this object and the failed operation is re-issued once on the fallback.
    Share one instance per process.
    """

    def __init__(
        self,
        primary: LogBackend,
        fallback: LogBackend,
        *,
        open_attempts: int = 3,
        open_backoff_ms: int = 150,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if open_attempts < 1:
            raise ValueError("open_attempts must be >= 1")
        self._primary = primary
        self._fallback = fallback
        self._open_attempts = open_attempts
        self._open_backoff_ms = open_backoff_ms
        self._sleep = sleep
        self._mode = StorageMode.PRIMARY
        self._primary_open = False

    @property
    def mode(self) -> StorageMode:
        return self._mode

    @property
    def primary(self) -> LogBackend:
        return self._primary

    @property
    def fallback(self) -> LogBackend:
        return self._fallback

    async def get(self, date: str) -> DailyLog | None:
        return await self._dispatch("get", lambda b: b.get(date))

    async def put(self, log: DailyLog) -> None:
        await self._dispatch("put", lambda b: b.put(log))

    async def delete(self, date: str) -> None:
        await self._dispatch("delete", lambda b: b.delete(date))

    async def list_all(self) -> list[DailyLog]:
        return await self._dispatch("list_all", lambda b: b.list_all())

    async def clear(self) -> None:
        await self._dispatch("clear", lambda b: b.clear())

    async def _dispatch(
        self, op_name: str, call: Callable[[LogBackend], Awaitable[T]]
    ) -> T:
        """Attempt the primary, then flip and attempt the fallback once."""
        if await self._ensure_primary():
            try:
                return await call(self._primary)
            except PRIMARY_ERRORS as exc:
                self._downgrade(f"{op_name} failed on {self._primary.name}: {exc}")
        return await call(self._fallback)

    async def _ensure_primary(self) -> bool:
        if self._mode is StorageMode.FALLBACK:
            return False
        if self._primary_open:
            return True
        for attempt in range(1, self._open_attempts + 1):
            try:
                await self._primary.open()
            except PRIMARY_ERRORS as exc:
                logger.warning(
                    "Opening %s failed (attempt %d/%d): %s",
                    self._primary.name,
                    attempt,
                    self._open_attempts,
                    exc,
                )
                if attempt < self._open_attempts:
                    await self._sleep(self._open_backoff_ms * attempt / 1000)
                continue
            self._primary_open = True
            return True
        self._downgrade(f"{self._primary.name} unavailable")
        return False

    def _downgrade(self, reason: str) -> None:
        if self._mode is StorageMode.FALLBACK:
            return
        self._mode = StorageMode.FALLBACK
        logger.warning(
            "Switching to %s storage for this session: %s",
            self._fallback.name,
            reason,
        )


def open_storage(
    data_dir: Path,
    *,
    bulk_read: bool = True,
    open_attempts: int = 3,
    open_backoff_ms: int = 150,
) -> LogStorage:
    """Build the standard SQLite + blob storage under ``data_dir``."""
    return LogStorage(
        SQLiteLogBackend(data_dir / DB_FILENAME, bulk_read=bulk_read),
        BlobLogBackend(data_dir, FALLBACK_KEY),
        open_attempts=open_attempts,
        open_backoff_ms=open_backoff_ms,
    )
