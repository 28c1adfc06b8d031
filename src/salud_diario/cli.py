"""CLI del registro diario: edición por fecha, import/export y borrados."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path

from salud_diario.autosave import (
    AutosaveController,
    FormValues,
    SaveResult,
    form_from_log,
    load_for_edit,
    save_current,
)
from salud_diario.bulk import clear_all, clear_range
from salud_diario.config import (
    CONFIG_FILENAME,
    AppConfig,
    ConfigStore,
    apply_overrides,
)
from salud_diario.dates import parse_iso, today_iso
from salud_diario.exporter import export_filename, write_export
from salud_diario.importer import ImportFileError, import_file
from salud_diario.model import (
    MEAL_SLOTS,
    NUMERIC_FIELDS,
    Meal,
    Meals,
    log_to_dict,
    to_bool,
)
from salud_diario.storage import LogStorage, StorageMode, open_storage
from salud_diario.summary import (
    activity_totals,
    earliest_date,
    format_range_stats,
    format_record_count,
    measure_interval,
    measurements_allowed,
    summarize_log,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Registro diario de salud offline (SQLite + respaldo JSON)."
    )
    parser.add_argument(
        "--data-dir",
        default=str(Path.home() / ".salud_diario"),
        help="Directorio de datos (default: ~/.salud_diario).",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Mostrar logs informativos."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Mostrar el registro de una fecha.")
    show.add_argument("date", help="Fecha ISO o 'today'.")

    set_ = sub.add_parser("set", help="Editar campos de una fecha y guardar.")
    set_.add_argument("date", help="Fecha ISO o 'today'.")
    set_.add_argument(
        "assignments",
        nargs="+",
        metavar="FIELD=VALUE",
        help="Ej: weight=70.5 supp.vitamin_d3=1 meal.lunch.text=Arroz",
    )

    delete = sub.add_parser("delete", help="Borrar el registro de una fecha.")
    delete.add_argument("date")

    export = sub.add_parser("export", help="Exportar todos los registros.")
    export.add_argument("kind", choices=["json", "csv"])
    export.add_argument("--out", default=None, help="Archivo de salida.")

    imp = sub.add_parser("import", help="Importar registros desde JSON o CSV.")
    imp.add_argument("file")
    imp.add_argument(
        "--auto-date",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fechar filas sin fecha con la anterior + 1 día.",
    )

    clear_rng = sub.add_parser("clear-range", help="Borrar un rango de fechas.")
    clear_rng.add_argument("date_from")
    clear_rng.add_argument("date_to")

    clear = sub.add_parser("clear-all", help="Borrar TODOS los registros.")
    clear.add_argument("--yes", action="store_true", help="No pedir confirmación.")

    sub.add_parser("stats", help="Resumen de registros guardados.")

    cfg = sub.add_parser("config", help="Ver o cambiar la configuración.")
    cfg.add_argument("assignments", nargs="*", metavar="KEY=VALUE")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if ns.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    data_dir = Path(ns.data_dir).expanduser().resolve()
    config_store = ConfigStore(data_dir / CONFIG_FILENAME)
    config = config_store.load()

    if ns.command == "config":
        return _run_config(config_store, config, ns.assignments)
    if ns.command == "clear-all" and not ns.yes and not _confirm_clear_all():
        print("Cancelado.")
        return 1

    storage = open_storage(data_dir)
    try:
        return asyncio.run(_dispatch(ns, storage, config, data_dir))
    except (ImportFileError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1


async def _dispatch(
    ns: argparse.Namespace,
    storage: LogStorage,
    config: AppConfig,
    data_dir: Path,
) -> int:
    if ns.command == "show":
        return await _run_show(storage, config, _resolve_date(ns.date, config))
    if ns.command == "set":
        day = _resolve_date(ns.date, config)
        return await _run_set(storage, config, day, ns.assignments)
    if ns.command == "delete":
        day = _resolve_date(ns.date, config)
        await storage.delete(day)
        print(f"OK: {day} borrado.")
    elif ns.command == "export":
        default_name = export_filename(ns.kind, today_iso(config.timezone))
        out_path = (
            Path(ns.out).expanduser() if ns.out else data_dir / "exports" / default_name
        )
        count = await write_export(storage, out_path, ns.kind)
        print(f"OK: {count} registro(s) exportados a {out_path}")
    elif ns.command == "import":
        auto_date = config.import_auto_date if ns.auto_date is None else ns.auto_date
        report = await import_file(storage, Path(ns.file), auto_date=auto_date)
        print(report.message())
    elif ns.command == "clear-range":
        removed = await clear_range(
            storage,
            _resolve_date(ns.date_from, config),
            _resolve_date(ns.date_to, config),
        )
        print(f"OK: {removed} registro(s) borrados.")
    elif ns.command == "clear-all":
        await clear_all(storage)
        print("All data cleared.")
    elif ns.command == "stats":
        await _run_stats(storage)
    _warn_if_degraded(storage)
    return 0


async def _run_show(storage: LogStorage, config: AppConfig, day: str) -> int:
    log = await load_for_edit(storage, day)
    summary = summarize_log(log)
    logs = await storage.list_all()
    interval = measure_interval(config.measure_mode, config.measure_interval_days)
    allowed = measurements_allowed(day, earliest_date(logs), interval)
    print(json.dumps(log_to_dict(log), indent=2, ensure_ascii=False))
    print(
        f"Supplements: {summary.supplements} • Exercises: {summary.exercises}"
        f" • Fasting: {'Yes' if summary.any_fasting else '--'}"
    )
    if not allowed:
        print("Measurements are not scheduled for this date.")
    _warn_if_degraded(storage)
    return 0


async def _run_set(
    storage: LogStorage, config: AppConfig, day: str, assignments: list[str]
) -> int:
    results: list[SaveResult] = []
    form = FormValues(date=day)

    async def _save() -> SaveResult:
        return await save_current(storage, form)

    controller = AutosaveController(
        _save, delay_ms=config.autosave_delay_ms, on_saved=results.append
    )
    with controller.hydrate():
        form = form_from_log(await load_for_edit(storage, day))
    form = apply_assignments(form, assignments)
    controller.mark_dirty()
    await controller.flush()

    if not results:
        print("Error: no se pudo guardar.")
        return 1
    if results[0].saved:
        print(f"OK: {day} guardado.")
    else:
        print(f"Sin cambios: {day} está vacío y no se guardó.")
    _warn_if_degraded(storage)
    return 0


async def _run_stats(storage: LogStorage) -> None:
    logs = await storage.list_all()
    totals = activity_totals(logs)
    print(format_record_count(len(logs)))
    print(format_range_stats(logs))
    print(
        f"Supps: {totals.supplements} • Ex: {totals.exercises}"
        f" • Fasted: {totals.fasted} • Water: {totals.water_fasted}"
    )


def _run_config(
    store: ConfigStore, config: AppConfig, assignments: list[str]
) -> int:
    if assignments:
        try:
            config = apply_overrides(config, _split_assignments(assignments))
        except ValueError as exc:
            print(f"Error: {exc}")
            return 1
        store.save(config)
    for key, value in vars(config).items():
        print(f"{key}={value}")
    return 0


def apply_assignments(form: FormValues, assignments: list[str]) -> FormValues:
    """Apply ``FIELD=VALUE`` edits to the form.

    Fields: ``supp.<id>``, ``ex.<id>``, ``meal.<slot>.time|text``, the ten
    numeric fields, ``fasted``, ``water_fasted``, ``custom_vitamin_name``,
    ``custom_vitamin_taken`` and ``notes``.

    Raises:
        ValueError: On an unknown field.
    """
    supplements = dict(form.supplements)
    exercises = dict(form.exercises)
    numbers = dict(form.numbers)
    meals = form.meals
    changes: dict[str, object] = {}
    for key, value in _split_assignments(assignments).items():
        if key.startswith("supp."):
            supplements[key[5:]] = to_bool(value)
        elif key.startswith("ex."):
            exercises[key[3:]] = to_bool(value)
        elif key.startswith("meal."):
            meals = _set_meal(meals, key, value)
        elif key in NUMERIC_FIELDS:
            numbers[key] = value
        elif key in ("fasted", "water_fasted", "custom_vitamin_taken"):
            changes[key] = to_bool(value)
        elif key in ("custom_vitamin_name", "notes"):
            changes[key] = value
        else:
            raise ValueError(f"Unknown field: {key}")
    return replace(
        form,
        supplements=supplements,
        exercises=exercises,
        numbers=numbers,
        meals=meals,
        **changes,  # type: ignore[arg-type]
    )


def _set_meal(meals: Meals, key: str, value: str) -> Meals:
    parts = key.split(".")
    slot_name, attr = (parts[1], parts[2]) if len(parts) == 3 else ("", "")
    if slot_name not in MEAL_SLOTS or attr not in ("time", "text"):
        raise ValueError(f"Unknown field: {key}")
    slot: Meal = getattr(meals, slot_name)
    return replace(meals, **{slot_name: replace(slot, **{attr: value})})


def _split_assignments(assignments: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        out[key.strip()] = value
    return out


def _resolve_date(raw: str, config: AppConfig) -> str:
    if raw.strip().lower() == "today":
        return today_iso(config.timezone)
    return parse_iso(raw).isoformat()


def _confirm_clear_all() -> bool:
    answer = input("Clear ALL data on this device? This cannot be undone. [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _warn_if_degraded(storage: LogStorage) -> None:
    if storage.mode is StorageMode.FALLBACK:
        print("Aviso: usando almacenamiento de respaldo (JSON).")
