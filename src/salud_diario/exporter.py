"""Exportación del conjunto completo de registros a JSON y CSV."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Literal

import pandas as pd

from salud_diario.model import (
    EXERCISE_IDS,
    NUMERIC_FIELDS,
    SUPPLEMENT_IDS,
    DailyLog,
    log_to_dict,
    sort_by_date,
)
from salud_diario.storage import LogStorage

ExportKind = Literal["json", "csv"]

CSV_COLUMNS: tuple[str, ...] = (
    "id",
    "date",
    *(f"supp_{sid}" for sid in SUPPLEMENT_IDS),
    "custom_vitamin_name",
    "custom_vitamin_taken",
    *(f"ex_{eid}" for eid in EXERCISE_IDS),
    "fasted",
    "water_fasted",
    *NUMERIC_FIELDS,
)


def export_json(logs: Iterable[DailyLog]) -> str:
    """Pretty-printed array of records, date ascending."""
    payload = [log_to_dict(log) for log in sort_by_date(logs)]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_csv(logs: Iterable[DailyLog]) -> str:
    """Flat table with fixed column order; booleans as 1/0.

    Cells holding a comma, quote or newline are quoted with doubled quotes.
    Carriage returns in text cells are written as newlines.
    """
    rows = [_csv_row(log) for log in sort_by_date(logs)]
    df = pd.DataFrame(rows, columns=list(CSV_COLUMNS), dtype=str)
    return df.to_csv(index=False, lineterminator="\n")


def export_filename(kind: ExportKind, day: str) -> str:
    return f"health-tracker-export-{day}.{kind}"


async def write_export(storage: LogStorage, out_path: Path, kind: ExportKind) -> int:
    """Write the full record set to ``out_path``. Returns the record count."""
    logs = await storage.list_all()
    text = export_json(logs) if kind == "json" else export_csv(logs)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    return len(logs)


def _csv_row(log: DailyLog) -> list[str]:
    row = [_text_cell(log.id), log.date]
    row.extend(_flag(log.supplements.get(sid)) for sid in SUPPLEMENT_IDS)
    row.append(_text_cell(log.custom_vitamin_name))
    row.append(_flag(log.custom_vitamin_taken))
    row.extend(_flag(log.exercises.get(eid)) for eid in EXERCISE_IDS)
    row.append(_flag(log.fasted))
    row.append(_flag(log.water_fasted))
    row.extend(_format_number(value) for value in log.numeric_values())
    return row


def _text_cell(value: str) -> str:
    # to_csv leaves a bare \r unquoted.
    return value.replace("\r\n", "\n").replace("\r", "\n")


def _flag(value: bool | None) -> str:
    return "1" if value else "0"


def _format_number(value: float | None) -> str:
    """Format numbers without a trailing ``.0`` for integral values."""
    if value is None:
        return ""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)
