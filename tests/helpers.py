from __future__ import annotations

from collections.abc import Iterable

from salud_diario.backends.base import BackendError, LogBackend
from salud_diario.model import DailyLog


class MemoryBackend(LogBackend):
    """In-memory backend that can fail on demand."""

    def __init__(
        self,
        name: str = "memory",
        *,
        open_failures: int = 0,
        fail_ops: Iterable[str] = (),
        error: type[Exception] = BackendError,
    ) -> None:
        self.name = name
        self.logs: dict[str, DailyLog] = {}
        self.calls: list[str] = []
        self.open_calls = 0
        self._open_failures = open_failures
        self._fail_ops = set(fail_ops)
        self._error = error

    async def open(self) -> None:
        self.open_calls += 1
        if self.open_calls <= self._open_failures:
            raise self._error("transient open failure")

    def _call(self, op: str) -> None:
        self.calls.append(op)
        if op in self._fail_ops:
            raise self._error(f"{op} failed")

    async def get(self, date: str) -> DailyLog | None:
        self._call("get")
        return self.logs.get(date)

    async def put(self, log: DailyLog) -> None:
        self._call("put")
        self.logs[log.date] = log

    async def delete(self, date: str) -> None:
        self._call("delete")
        self.logs.pop(date, None)

    async def list_all(self) -> list[DailyLog]:
        self._call("list_all")
        return list(self.logs.values())

    async def clear(self) -> None:
        self._call("clear")
        self.logs.clear()


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
