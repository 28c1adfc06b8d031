"""Importación de registros desde JSON o CSV, con reconciliación."""

from __future__ import annotations

import asyncio
import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from salud_diario.dates import add_days, parse_import_date
from salud_diario.model import (
    EXERCISE_IDS,
    NUMERIC_FIELDS,
    SUPPLEMENT_IDS,
    DailyLog,
    log_from_dict,
    make_empty_log,
    merge_flags,
    to_bool,
    to_number,
)
from salud_diario.storage import LogStorage

logger = logging.getLogger(__name__)

DATE_HEADERS: tuple[str, ...] = ("date", "Date", "DATE")

_BOM = "\ufeff"


class ImportFileError(ValueError):
    """The file as a whole cannot be imported; nothing was written."""


@dataclass(frozen=True)
class ImportReport:
    """Counts reported back to the caller after an import."""

    accepted: int = 0
    auto_dated: int = 0
    skipped: int = 0

    def message(self) -> str:
        msg = f"Imported {self.accepted} row(s)."
        if self.auto_dated > 0:
            msg += f" Auto-dated {self.auto_dated} row(s)."
        if self.skipped > 0:
            msg += (
                f" Skipped {self.skipped} row(s)"
                " (missing/invalid date and could not auto-date)."
            )
        return msg


async def import_file(
    storage: LogStorage, path: Path, *, auto_date: bool = False
) -> ImportReport:
    """Import ``path`` choosing the format by extension (.json, else CSV)."""
    try:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportFileError(f"{path.name} is not UTF-8 text") from exc
    except OSError as exc:
        raise ImportFileError(f"Cannot read {path}: {exc.strerror or exc}") from exc
    if path.suffix.lower() == ".json":
        return await import_json(storage, text)
    return await import_csv(storage, text, auto_date=auto_date)


async def import_json(storage: LogStorage, text: str) -> ImportReport:
    """Import a single record object or an array of them.

    Raises:
        ImportFileError: If the text is not valid JSON.
    """
    try:
        data: Any = json.loads(text.lstrip(_BOM))
    except json.JSONDecodeError as exc:
        raise ImportFileError("Invalid JSON file.") from exc

    items = data if isinstance(data, list) else [data]
    accepted = 0
    skipped = 0
    for raw in items:
        log = reconcile_json_item(raw)
        if log is None:
            skipped += 1
            continue
        await storage.put(log)
        accepted += 1

    report = ImportReport(accepted=accepted, skipped=skipped)
    logger.info("JSON import: %s", report.message())
    return report


def reconcile_json_item(raw: Any) -> DailyLog | None:
    """Merge a foreign record onto a default one; None if it has no date."""
    if not isinstance(raw, dict):
        return None
    raw_date = raw.get("date")
    if not isinstance(raw_date, str):
        return None
    iso = parse_import_date(raw_date)
    if iso is None:
        return None
    log = log_from_dict(raw, date=iso)
    _log_unknown_ids(log.date, log.supplements, log.exercises)
    return log


async def import_csv(
    storage: LogStorage, text: str, *, auto_date: bool = False
) -> ImportReport:
    """Import a comma or semicolon separated table.

    Rows without a resolvable date get the previous row's date + 1 day when
    ``auto_date`` is set and a previous date exists; otherwise they are
    skipped. Malformed rows are skipped, not fatal.

    Raises:
        ImportFileError: If the text is empty or has no data rows.
    """
    text = text.lstrip(_BOM)
    if not text.strip():
        raise ImportFileError("CSV appears empty.")

    delimiter = detect_delimiter(text)
    df, bad_rows = read_table(text, delimiter)
    if df.empty:
        raise ImportFileError("CSV appears to have no data rows.")

    date_col = next((h for h in DATE_HEADERS if h in df.columns), None)
    accepted = 0
    auto_dated = 0
    skipped = bad_rows
    last_iso: str | None = None

    for record in df.to_dict(orient="records"):
        cells = {str(k): str(v).strip() for k, v in record.items()}
        if not auto_date and all(v == "" for v in cells.values()):
            continue

        iso = parse_import_date(cells.get(date_col, "")) if date_col else None
        if iso is None:
            if auto_date and last_iso is not None:
                iso = add_days(last_iso, 1)
                auto_dated += 1
            else:
                skipped += 1
                continue
        last_iso = iso

        await storage.put(row_to_log(cells, iso))
        accepted += 1

    report = ImportReport(accepted=accepted, auto_dated=auto_dated, skipped=skipped)
    logger.info("CSV import: %s", report.message())
    return report


def detect_delimiter(text: str) -> str:
    """``;`` when the header line has more semicolons than commas."""
    first_line = text.splitlines()[0] if text else ""
    return ";" if first_line.count(";") > first_line.count(",") else ","


def read_table(text: str, delimiter: str) -> tuple[pd.DataFrame, int]:
    """Parse CSV text into string cells.

    Quoted fields may hold the delimiter, newlines and doubled quotes. Rows
    with more fields than the header are dropped and counted.

    Returns:
        DataFrame with stripped headers and the number of dropped rows.
    """
    bad_rows = 0

    def _on_bad_line(_fields: list[str]) -> None:
        nonlocal bad_rows
        bad_rows += 1
        return None

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            dtype=str,
            na_filter=False,
            skip_blank_lines=False,
            quotechar='"',
            doublequote=True,
            engine="python",
            on_bad_lines=_on_bad_line,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise ImportFileError(f"Cannot parse CSV: {exc}") from exc

    df.columns = [str(col).strip().lstrip(_BOM) for col in df.columns]
    return df.fillna(""), bad_rows


def row_to_log(cells: dict[str, str], iso: str) -> DailyLog:
    """Build a record from one table row (header -> cell)."""
    base = make_empty_log(iso, cells.get("id") or None)
    supplements = merge_flags(SUPPLEMENT_IDS, _prefixed(cells, "supp_")).flags
    exercises = merge_flags(EXERCISE_IDS, _prefixed(cells, "ex_")).flags
    _log_unknown_ids(iso, supplements, exercises)
    numbers = {name: to_number(cells.get(name)) for name in NUMERIC_FIELDS}
    return DailyLog(
        id=base.id,
        date=iso,
        supplements=supplements,
        exercises=exercises,
        custom_vitamin_name=cells.get("custom_vitamin_name", ""),
        custom_vitamin_taken=to_bool(cells.get("custom_vitamin_taken", "")),
        fasted=to_bool(cells.get("fasted", "")),
        water_fasted=to_bool(cells.get("water_fasted", "")),
        meals=base.meals,
        notes=base.notes,
        **numbers,
    )


def _prefixed(cells: dict[str, str], prefix: str) -> dict[str, str]:
    return {
        key[len(prefix) :]: value
        for key, value in cells.items()
        if key.startswith(prefix) and len(key) > len(prefix)
    }


def _log_unknown_ids(
    iso: str, supplements: dict[str, bool], exercises: dict[str, bool]
) -> None:
    extra = sorted(set(supplements) - set(SUPPLEMENT_IDS)) + sorted(
        set(exercises) - set(EXERCISE_IDS)
    )
    if extra:
        logger.debug("Record %s keeps unknown ids: %s", iso, ", ".join(extra))
