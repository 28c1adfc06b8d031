"""Autoguardado con debounce y un único guardado en curso."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from salud_diario.model import (
    EXERCISE_IDS,
    NUMERIC_FIELDS,
    SUPPLEMENT_IDS,
    DailyLog,
    Meals,
    is_log_empty,
    make_empty_log,
    merge_flags,
    to_number,
)
from salud_diario.storage import LogStorage

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 600


@dataclass(frozen=True)
class FormValues:
    """Field values for the active date, as supplied by the editing surface.

    ``numbers`` holds raw inputs keyed by numeric field name; blank or invalid
    entries normalize to absent.
    """

    date: str
    supplements: Mapping[str, bool] = field(default_factory=dict)
    exercises: Mapping[str, bool] = field(default_factory=dict)
    custom_vitamin_name: str = ""
    custom_vitamin_taken: bool = False
    fasted: bool = False
    water_fasted: bool = False
    numbers: Mapping[str, object] = field(default_factory=dict)
    meals: Meals = field(default_factory=Meals)
    notes: str = ""


@dataclass(frozen=True)
class SaveResult:
    saved: bool
    log: DailyLog


def apply_form(base: DailyLog, values: FormValues) -> DailyLog:
    """Overlay form values onto ``base`` (whole-record overwrite, same id).

    Raises:
        ValueError: If ``values.numbers`` names an unknown field.
    """
    unknown = set(values.numbers) - set(NUMERIC_FIELDS)
    if unknown:
        raise ValueError(f"Unknown numeric fields: {sorted(unknown)}")
    numbers = {name: to_number(values.numbers.get(name)) for name in NUMERIC_FIELDS}
    return replace(
        base,
        date=values.date,
        supplements=merge_flags(
            SUPPLEMENT_IDS, {**base.supplements, **values.supplements}
        ).flags,
        exercises=merge_flags(
            EXERCISE_IDS, {**base.exercises, **values.exercises}
        ).flags,
        custom_vitamin_name=values.custom_vitamin_name.strip(),
        custom_vitamin_taken=values.custom_vitamin_taken,
        fasted=values.fasted,
        water_fasted=values.water_fasted,
        meals=values.meals,
        notes=values.notes,
        **numbers,
    )


def form_from_log(log: DailyLog) -> FormValues:
    """Form contents when hydrating from a stored (or default) record."""
    return FormValues(
        date=log.date,
        supplements=dict(log.supplements),
        exercises=dict(log.exercises),
        custom_vitamin_name=log.custom_vitamin_name,
        custom_vitamin_taken=log.custom_vitamin_taken,
        fasted=log.fasted,
        water_fasted=log.water_fasted,
        numbers=dict(zip(NUMERIC_FIELDS, log.numeric_values())),
        meals=log.meals,
        notes=log.notes,
    )


async def load_for_edit(storage: LogStorage, date: str) -> DailyLog:
    """Stored record for ``date`` or a default one (not persisted)."""
    existing = await storage.get(date)
    return existing if existing is not None else make_empty_log(date)


async def save_current(storage: LogStorage, values: FormValues) -> SaveResult:
    """Collect-and-persist cycle for the active date.

    A new record that is still empty is not written.
    """
    existing = await storage.get(values.date)
    base = existing if existing is not None else make_empty_log(values.date)
    log = apply_form(base, values)
    if existing is None and is_log_empty(log):
        return SaveResult(saved=False, log=log)
    await storage.put(log)
    return SaveResult(saved=True, log=log)


class AutosaveState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    SAVING = "saving"
    SAVING_PENDING_RETRY = "saving_pending_retry"


class AutosaveController:
    """Debounced, single-flight autosave.

    Transitions:

    - dirty: IDLE/SCHEDULED -> SCHEDULED (timer re-armed);
      SAVING -> SAVING_PENDING_RETRY.
    - timer fired: SCHEDULED -> SAVING, or IDLE while hydrating.
    - save completed: SAVING -> IDLE;
      SAVING_PENDING_RETRY -> SCHEDULED with zero delay.

    Save failures are logged and swallowed; the next edit retries.
    """

    def __init__(
        self,
        save: Callable[[], Awaitable[Any]],
        *,
        delay_ms: int = DEFAULT_DELAY_MS,
        on_saved: Callable[[Any], None] | None = None,
    ) -> None:
        self._save = save
        self._delay_ms = delay_ms
        self._on_saved = on_saved
        self._state = AutosaveState.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._hydrating = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> AutosaveState:
        return self._state

    @property
    def hydrating(self) -> bool:
        return self._hydrating

    @property
    def in_flight(self) -> bool:
        return self._state in (
            AutosaveState.SAVING,
            AutosaveState.SAVING_PENDING_RETRY,
        )

    def mark_dirty(self) -> None:
        if self._hydrating:
            return
        if self._state is AutosaveState.SAVING:
            self._set_state(AutosaveState.SAVING_PENDING_RETRY)
        elif self._state in (AutosaveState.IDLE, AutosaveState.SCHEDULED):
            self._arm(self._delay_ms)

    def run_autosave(self) -> None:
        """Start a save now unless hydrating or one is already in flight."""
        if self._hydrating:
            self._cancel_timer()
            if self._state is AutosaveState.SCHEDULED:
                self._set_state(AutosaveState.IDLE)
            return
        if self.in_flight:
            self._set_state(AutosaveState.SAVING_PENDING_RETRY)
            return
        self._cancel_timer()
        self._set_state(AutosaveState.SAVING)
        self._task = asyncio.get_running_loop().create_task(self._run_save())

    @contextmanager
    def hydrate(self) -> Iterator[None]:
        """Suppress autosave while the form is filled from storage."""
        self._hydrating = True
        self._cancel_timer()
        if self._state is AutosaveState.SCHEDULED:
            self._set_state(AutosaveState.IDLE)
        try:
            yield
        finally:
            self._hydrating = False

    async def wait_idle(self) -> None:
        await self._idle.wait()

    async def flush(self) -> None:
        """Run a scheduled save immediately and wait for the machine to idle."""
        if self._state is AutosaveState.SCHEDULED:
            self.run_autosave()
        await self.wait_idle()

    def close(self) -> None:
        """Drop a pending timer; a save already running completes."""
        self._cancel_timer()
        if self._state is AutosaveState.SCHEDULED:
            self._set_state(AutosaveState.IDLE)

    def _arm(self, delay_ms: int) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay_ms / 1000, self._on_timer)
        self._set_state(AutosaveState.SCHEDULED)

    def _on_timer(self) -> None:
        self._timer = None
        self.run_autosave()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _run_save(self) -> None:
        try:
            result = await self._save()
        except Exception:
            logger.warning("Autosave failed", exc_info=True)
        else:
            if self._on_saved is not None:
                self._on_saved(result)
        finally:
            self._save_completed()

    def _save_completed(self) -> None:
        self._task = None
        if self._state is AutosaveState.SAVING_PENDING_RETRY:
            self._arm(0)
        else:
            self._set_state(AutosaveState.IDLE)

    def _set_state(self, state: AutosaveState) -> None:
        self._state = state
        if state is AutosaveState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
