"""Clases base para backends de persistencia."""

from __future__ import annotations

from abc import ABC, abstractmethod

from salud_diario.model import DailyLog


class BackendError(RuntimeError):
    """A backend could not open or complete an operation."""


class LogBackend(ABC):
    """Abstract record store keyed by ISO date."""

    name: str = "backend"

    async def open(self) -> None:
        """Prepare the backend for use.

        Raises:
            BackendError: If the store cannot be opened.
        """
        return None

    @abstractmethod
    async def get(self, date: str) -> DailyLog | None:
        """Return the record stored for ``date`` or None."""

    @abstractmethod
    async def put(self, log: DailyLog) -> None:
        """Insert or overwrite the record for ``log.date``."""

    @abstractmethod
    async def delete(self, date: str) -> None:
        """Remove the record for ``date`` (no-op when absent)."""

    @abstractmethod
    async def list_all(self) -> list[DailyLog]:
        """Return every stored record, in no particular order."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every stored record."""
