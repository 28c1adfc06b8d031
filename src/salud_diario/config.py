"""Configuracion persistida en SQLite (tabla key/value)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TypeVar

from dateutil import tz

from salud_diario.dates import DEFAULT_TZ_NAME

CONFIG_FILENAME = "salud_diario_config.sqlite3"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

MEASURE_MODES = ("daily", "weekly", "custom")

T = TypeVar("T")


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app."""

    autosave_delay_ms: int = 600
    import_auto_date: bool = False
    measure_mode: str = "daily"
    measure_interval_days: int = 7
    timezone: str = DEFAULT_TZ_NAME


class ConfigStore:
    """Repositorio SQLite para la configuracion."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def load(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        defaults = AppConfig()
        return AppConfig(
            autosave_delay_ms=_or_default(
                _parse_int(values.get("autosave_delay_ms")), defaults.autosave_delay_ms
            ),
            import_auto_date=_or_default(
                _parse_bool(values.get("import_auto_date")), defaults.import_auto_date
            ),
            measure_mode=_parse_mode(values.get("measure_mode")),
            measure_interval_days=_or_default(
                _parse_int(values.get("measure_interval_days")),
                defaults.measure_interval_days,
            ),
            timezone=_parse_timezone(values.get("timezone")),
        )

    def save(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "autosave_delay_ms": str(config.autosave_delay_ms),
            "import_auto_date": "1" if config.import_auto_date else "0",
            "measure_mode": config.measure_mode,
            "measure_interval_days": str(config.measure_interval_days),
            "timezone": config.timezone,
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()


def config_keys() -> list[str]:
    return [f.name for f in fields(AppConfig)]


def apply_overrides(config: AppConfig, overrides: dict[str, str]) -> AppConfig:
    """Return ``config`` with ``key=value`` strings applied.

    Raises:
        ValueError: On an unknown key or a value that does not parse.
    """
    changes: dict[str, object] = {}
    for key, raw in overrides.items():
        if key in ("autosave_delay_ms", "measure_interval_days"):
            value = _parse_int(raw)
            if value is None or value < 0:
                raise ValueError(f"{key} must be a non-negative integer")
            changes[key] = value
        elif key == "import_auto_date":
            flag = _parse_bool(raw)
            if flag is None:
                raise ValueError(f"{key} must be a boolean")
            changes[key] = flag
        elif key == "measure_mode":
            if raw not in MEASURE_MODES:
                raise ValueError(f"{key} must be one of {', '.join(MEASURE_MODES)}")
            changes[key] = raw
        elif key == "timezone":
            if not _is_known_timezone(raw):
                raise ValueError(f"Unknown timezone: {raw}")
            changes[key] = raw
        else:
            raise ValueError(f"Unknown config key: {key}")
    return replace(config, **changes)  # type: ignore[arg-type]


def _or_default(value: T | None, default: T) -> T:
    return default if value is None else value


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_bool(raw: str | None) -> bool | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes"):
        return True
    if value in ("0", "false", "no"):
        return False
    return None


def _parse_mode(raw: str | None) -> str:
    return raw if raw in MEASURE_MODES else AppConfig().measure_mode


def _parse_timezone(raw: str | None) -> str:
    if raw is None or not _is_known_timezone(raw):
        return DEFAULT_TZ_NAME
    return raw


def _is_known_timezone(name: str) -> bool:
    return bool(name.strip()) and tz.gettz(name) is not None
