"""Estadísticas derivadas (solo lectura) sobre el conjunto de registros."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import pandas as pd

from salud_diario.dates import days_between
from salud_diario.model import NUMERIC_FIELDS, DailyLog, is_log_empty, sort_by_date


@dataclass(frozen=True)
class LogSummary:
    """Per-record counters shown next to the form."""

    supplements: int
    exercises: int
    any_fasting: bool


@dataclass(frozen=True)
class ActivityTotals:
    supplements: int
    exercises: int
    fasted: int
    water_fasted: int


def record_count(logs: Sequence[DailyLog]) -> int:
    return len(logs)


def days_logged(logs: Sequence[DailyLog]) -> int:
    """Number of non-empty records."""
    return sum(1 for log in logs if not is_log_empty(log))


def span_days(logs: Sequence[DailyLog]) -> int:
    """Inclusive calendar days from first to last non-empty record (0 if none)."""
    dates = sorted(log.date for log in logs if not is_log_empty(log))
    if not dates:
        return 0
    return days_between(dates[0], dates[-1]) + 1


def summarize_log(log: DailyLog) -> LogSummary:
    custom = bool(log.custom_vitamin_name.strip()) and log.custom_vitamin_taken
    return LogSummary(
        supplements=_count_true(log.supplements) + (1 if custom else 0),
        exercises=_count_true(log.exercises),
        any_fasting=log.fasted or log.water_fasted,
    )


def activity_totals(logs: Sequence[DailyLog]) -> ActivityTotals:
    """Totals across all records (data for the activity bar chart)."""
    per_log = [summarize_log(log) for log in logs]
    return ActivityTotals(
        supplements=sum(s.supplements for s in per_log),
        exercises=sum(s.exercises for s in per_log),
        fasted=sum(1 for log in logs if log.fasted),
        water_fasted=sum(1 for log in logs if log.water_fasted),
    )


def measurement_frame(logs: Sequence[DailyLog]) -> pd.DataFrame:
    """Numeric measurements by date, ascending; absent values are NaN.

    Columns: date plus the ten numeric fields.
    """
    columns = ["date", *NUMERIC_FIELDS]
    rows = [
        {"date": log.date, **dict(zip(NUMERIC_FIELDS, log.numeric_values()))}
        for log in sort_by_date(logs)
    ]
    if not rows:
        return pd.DataFrame(columns=columns)
    out = pd.DataFrame(rows, columns=columns)
    out[list(NUMERIC_FIELDS)] = out[list(NUMERIC_FIELDS)].astype(float)
    return out.reset_index(drop=True)


def format_record_count(count: int) -> str:
    return f"{count} record{'' if count == 1 else 's'} stored"


def format_range_stats(logs: Sequence[DailyLog]) -> str:
    logged = days_logged(logs)
    if logged == 0:
        return "Days logged: 0"
    span = span_days(logs)
    return f"Days logged: {logged} • Span: {span} day{'' if span == 1 else 's'}"


def measure_interval(mode: str, custom: object = None) -> int:
    """Days between measurement days for a frequency mode.

    ``daily`` is 1, ``weekly`` 7; any other mode uses ``custom`` floored,
    at least 2, defaulting to 7 when it is not a finite number.
    """
    if mode == "daily":
        return 1
    if mode == "weekly":
        return 7
    try:
        value = float(custom)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        value = math.nan
    days = math.floor(value) if math.isfinite(value) else 7
    return max(2, days)


def measurements_allowed(date: str, anchor: str | None, interval: int) -> bool:
    """Whether measurements may be entered on ``date``.

    Allowed days fall on multiples of ``interval`` counted from ``anchor``
    (normally the earliest stored date).
    """
    if interval <= 1 or anchor is None:
        return True
    return days_between(anchor, date) % interval == 0


def earliest_date(logs: Sequence[DailyLog]) -> str | None:
    return min((log.date for log in logs), default=None)


def _count_true(flags: dict[str, bool]) -> int:
    return sum(1 for value in flags.values() if value is True)
