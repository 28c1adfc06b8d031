"""Modelo tipado del registro diario (un DailyLog por fecha)."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class Supplement:
    """Catalog entry for a supplement checkbox."""

    id: str
    name: str
    time: str


@dataclass(frozen=True)
class Exercise:
    """Catalog entry for an exercise checkbox."""

    id: str
    name: str


SUPPLEMENTS: tuple[Supplement, ...] = (
    Supplement("berberine_morning", "Berberine – Morning", "Morning"),
    Supplement("vitamin_d3", "Vitamin D3", "Morning"),
    Supplement("vitamin_k2", "Vitamin K2", "Morning"),
    Supplement("nr", "NR", "Morning"),
    Supplement("astaxanthin", "Astaxanthin", "Morning"),
    Supplement("metformin", "Metformin", "Morning"),
    Supplement("berberine_afternoon", "Berberine – Afternoon", "Afternoon"),
    Supplement("vitamin_c", "Vitamin C", "Afternoon"),
    Supplement("multivitamin", "Multivitamin", "Afternoon"),
    Supplement("sugar_support", "Sugar Support", "Afternoon"),
    Supplement("omega_3", "Omega 3", "Afternoon"),
    Supplement("tmg", "TMG", "Afternoon"),
    Supplement("nac", "NAC", "Evening"),
    Supplement("magnesium", "Magnesium", "Evening"),
    Supplement("taurine", "Taurine", "Evening"),
    Supplement("collagen", "Collagen", "Evening"),
    Supplement("protein_powder", "Protein Powder 84g", "Evening"),
    Supplement("cinnamon", "Cinnamon", "Evening"),
    Supplement("apple_cider_vinegar", "Apple Cider Vinegar", "Evening"),
    Supplement("creatine", "Creatine 10g", "Evening"),
    Supplement("probiotic", "Probiotic", "Evening"),
    Supplement("ubiquinol", "Ubiquinol", "Evening"),
)

EXERCISES: tuple[Exercise, ...] = (
    Exercise("treadmill", "Half Hour Treadmill"),
    Exercise("foot_exercise", "Foot Exercise"),
    Exercise("shoulder_exercise", "Shoulder Exercise"),
    Exercise("weight_training", "Weight Training"),
)

SUPPLEMENT_IDS: tuple[str, ...] = tuple(s.id for s in SUPPLEMENTS)
EXERCISE_IDS: tuple[str, ...] = tuple(e.id for e in EXERCISES)

NUMERIC_FIELDS: tuple[str, ...] = (
    "fasting_blood_sugar",
    "pre_dinner_sugar",
    "post_dinner_sugar",
    "waist_size",
    "weight",
    "fat_percentage",
    "blood_pressure_systolic",
    "blood_pressure_diastolic",
    "grip_strength_left",
    "grip_strength_right",
)

MEAL_SLOTS: tuple[str, ...] = ("breakfast", "lunch", "dinner")

_TRUE_STRINGS = frozenset({"1", "true", "yes"})


@dataclass(frozen=True)
class Meal:
    """One meal slot: free-text time and description."""

    time: str = ""
    text: str = ""


@dataclass(frozen=True)
class Meals:
    breakfast: Meal = field(default_factory=Meal)
    lunch: Meal = field(default_factory=Meal)
    dinner: Meal = field(default_factory=Meal)


@dataclass(frozen=True)
class DailyLog:
    """Registro de un día. ``date`` es la clave única."""

    id: str
    date: str
    supplements: dict[str, bool]
    exercises: dict[str, bool]
    custom_vitamin_name: str = ""
    custom_vitamin_taken: bool = False
    fasted: bool = False
    water_fasted: bool = False
    fasting_blood_sugar: float | None = None
    pre_dinner_sugar: float | None = None
    post_dinner_sugar: float | None = None
    waist_size: float | None = None
    weight: float | None = None
    fat_percentage: float | None = None
    blood_pressure_systolic: float | None = None
    blood_pressure_diastolic: float | None = None
    grip_strength_left: float | None = None
    grip_strength_right: float | None = None
    meals: Meals = field(default_factory=Meals)
    notes: str = ""

    def numeric_values(self) -> list[float | None]:
        return [getattr(self, name) for name in NUMERIC_FIELDS]


@dataclass(frozen=True)
class FlagMerge:
    """Result of merging a boolean map against the known id set."""

    flags: dict[str, bool]
    unknown: frozenset[str]


def new_log_id() -> str:
    return uuid4().hex


def make_empty_log(date: str, log_id: str | None = None) -> DailyLog:
    """Default-construct a record: all flags false, numerics absent."""
    return DailyLog(
        id=log_id or new_log_id(),
        date=date,
        supplements={sid: False for sid in SUPPLEMENT_IDS},
        exercises={eid: False for eid in EXERCISE_IDS},
    )


def is_log_empty(log: DailyLog | None) -> bool:
    """True when the record carries nothing worth persisting.

    Meals and notes are not considered: a day with only free text is still
    empty.
    """
    if log is None:
        return True
    any_supp = any(v is True for v in log.supplements.values()) or (
        bool(log.custom_vitamin_name.strip()) and log.custom_vitamin_taken
    )
    any_ex = any(v is True for v in log.exercises.values())
    any_fast = log.fasted or log.water_fasted
    any_num = any(v is not None and math.isfinite(v) for v in log.numeric_values())
    return not (any_supp or any_ex or any_fast or any_num)


def to_bool(value: object) -> bool:
    """Coerce a stored or imported flag.

    Strings are true only for ``1``, ``true`` or ``yes`` (case-insensitive).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, (int, float)):
        return value == 1
    return False


def to_number(value: object) -> float | None:
    """Coerce to a finite float, or None.

    Blank strings, booleans and non-finite or unparseable values become None.
    A comma is accepted as decimal separator.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text.replace(",", ".", 1))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def merge_flags(known_ids: Iterable[str], incoming: object) -> FlagMerge:
    """Merge a foreign boolean map onto the known id set.

    Known ids missing from ``incoming`` default to False. Extra keys are kept
    (forward compatibility) and reported in ``unknown``.
    """
    flags = dict.fromkeys(known_ids, False)
    known = frozenset(flags)
    unknown: set[str] = set()
    if isinstance(incoming, Mapping):
        for key, value in incoming.items():
            name = str(key)
            flags[name] = to_bool(value)
            if name not in known:
                unknown.add(name)
    return FlagMerge(flags=flags, unknown=frozenset(unknown))


def _meal_from(raw: object) -> Meal:
    if not isinstance(raw, Mapping):
        return Meal()
    time_val = raw.get("time")
    text_val = raw.get("text")
    return Meal(
        time="" if time_val is None else str(time_val),
        text="" if text_val is None else str(text_val),
    )


def meals_from_dict(raw: object) -> Meals:
    if not isinstance(raw, Mapping):
        return Meals()
    return Meals(**{slot: _meal_from(raw.get(slot)) for slot in MEAL_SLOTS})


def log_to_dict(log: DailyLog) -> dict[str, Any]:
    """Wire shape used by JSON export and both storage backends."""
    out: dict[str, Any] = {
        "id": log.id,
        "date": log.date,
        "supplements": dict(log.supplements),
        "custom_vitamin_name": log.custom_vitamin_name,
        "custom_vitamin_taken": log.custom_vitamin_taken,
        "exercises": dict(log.exercises),
        "fasted": log.fasted,
        "water_fasted": log.water_fasted,
    }
    for name in NUMERIC_FIELDS:
        out[name] = getattr(log, name)
    out["meals"] = {
        slot: {
            "time": getattr(log.meals, slot).time,
            "text": getattr(log.meals, slot).text,
        }
        for slot in MEAL_SLOTS
    }
    out["notes"] = log.notes
    return out


def log_from_dict(raw: Mapping[str, Any], *, date: str | None = None) -> DailyLog:
    """Build a total record from a (possibly partial) mapping.

    Defaults come first, incoming fields override, and flag maps are merged
    key by key so missing ids still read as False.

    Raises:
        ValueError: If no date is given and ``raw`` has no string ``date``.
    """
    day = date if date is not None else raw.get("date")
    if not isinstance(day, str) or not day:
        raise ValueError("Record without a string date")
    base = make_empty_log(day)

    raw_id = raw.get("id")
    vitamin_name = raw.get("custom_vitamin_name")
    notes = raw.get("notes")
    numbers = {key: to_number(raw.get(key)) for key in NUMERIC_FIELDS}
    return replace(
        base,
        id=str(raw_id) if raw_id not in (None, "") else base.id,
        supplements=merge_flags(SUPPLEMENT_IDS, raw.get("supplements")).flags,
        exercises=merge_flags(EXERCISE_IDS, raw.get("exercises")).flags,
        custom_vitamin_name="" if vitamin_name is None else str(vitamin_name),
        custom_vitamin_taken=to_bool(raw.get("custom_vitamin_taken")),
        fasted=to_bool(raw.get("fasted")),
        water_fasted=to_bool(raw.get("water_fasted")),
        meals=meals_from_dict(raw.get("meals")),
        notes="" if notes is None else str(notes),
        **numbers,
    )


def sort_by_date(logs: Iterable[DailyLog]) -> list[DailyLog]:
    return sorted(logs, key=lambda log: log.date)
