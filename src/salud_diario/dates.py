"""Utilidades de fechas ISO (YYYY-MM-DD) sin deriva por zona horaria."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from dateutil import tz

DEFAULT_TZ_NAME = "America/Argentina/Buenos_Aires"

_ISO_RX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_FIRST_SLASH_RX = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DAY_FIRST_DASH_RX = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_YEAR_FIRST_SLASH_RX = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")


def parse_iso(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the string is not a valid ISO calendar date.
    """
    match = _ISO_RX.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid ISO date: {value!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def to_iso(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def add_days(iso: str, delta: int) -> str:
    """Shift an ISO date by ``delta`` calendar days."""
    return to_iso(parse_iso(iso) + timedelta(days=delta))


def days_between(start_iso: str, end_iso: str) -> int:
    """Calendar days from ``start_iso`` to ``end_iso`` (negative if reversed)."""
    return (parse_iso(end_iso) - parse_iso(start_iso)).days


def is_iso(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_iso(value)
    except ValueError:
        return False
    return True


def today_iso(tz_name: str = DEFAULT_TZ_NAME) -> str:
    """Fecha local de hoy en formato ISO."""
    zone = tz.gettz(tz_name)
    return to_iso(datetime.now(tz=zone).date())


def parse_import_date(raw: str | None) -> str | None:
    """Normalize an imported date cell to ISO.

    Accepts ``YYYY-MM-DD``, day-first ``D/M/YYYY`` and ``D-M-YYYY``, and
    ``YYYY/M/D``. Returns None for blank or unparseable values, including
    impossible calendar dates.
    """
    value = (raw or "").strip()
    if not value:
        return None

    parts: tuple[str, str, str] | None = None
    if match := _ISO_RX.match(value):
        parts = (match.group(1), match.group(2), match.group(3))
    elif match := _DAY_FIRST_SLASH_RX.match(value):
        parts = (match.group(3), match.group(2), match.group(1))
    elif match := _DAY_FIRST_DASH_RX.match(value):
        parts = (match.group(3), match.group(2), match.group(1))
    elif match := _YEAR_FIRST_SLASH_RX.match(value):
        parts = (match.group(1), match.group(2), match.group(3))
    if parts is None:
        return None

    try:
        parsed = date(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        return None
    return to_iso(parsed)
