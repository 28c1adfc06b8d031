"""Backend de respaldo: un único blob JSON con todos los registros."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from salud_diario.backends.base import LogBackend
from salud_diario.model import DailyLog, log_from_dict, log_to_dict

logger = logging.getLogger(__name__)

FALLBACK_KEY = "health_tracker_logs_v1"


class BlobLogBackend(LogBackend):
    """Whole-array JSON file; every mutation rewrites the blob."""

    name = "blob"

    def __init__(self, directory: Path, key: str = FALLBACK_KEY) -> None:
        self._path = directory / f"{key}.json"

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, date: str) -> DailyLog | None:
        logs = await asyncio.to_thread(self._load_all)
        return next((log for log in logs if log.date == date), None)

    async def put(self, log: DailyLog) -> None:
        def _upsert(logs: list[DailyLog]) -> list[DailyLog]:
            if any(item.date == log.date for item in logs):
                return [log if item.date == log.date else item for item in logs]
            return [*logs, log]

        await asyncio.to_thread(self._modify, _upsert)

    async def delete(self, date: str) -> None:
        await asyncio.to_thread(
            self._modify, lambda logs: [log for log in logs if log.date != date]
        )

    async def list_all(self) -> list[DailyLog]:
        return await asyncio.to_thread(self._load_all)

    async def clear(self) -> None:
        await asyncio.to_thread(self._save_all, [])

    def _modify(self, change: Callable[[list[DailyLog]], list[DailyLog]]) -> None:
        self._save_all(change(self._load_all()))

    def _load_all(self) -> list[DailyLog]:
        """Read the blob; a missing or unreadable blob reads as empty."""
        if not self._path.exists():
            return []
        try:
            raw: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable fallback blob %s: %s", self._path, exc)
            return []
        if not isinstance(raw, list):
            return []
        out: list[DailyLog] = []
        for item in raw:
            if isinstance(item, dict) and isinstance(item.get("date"), str):
                if item["date"]:
                    out.append(log_from_dict(item))
        return out

    def _save_all(self, logs: list[DailyLog]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([log_to_dict(log) for log in logs], ensure_ascii=False)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(self._path)
