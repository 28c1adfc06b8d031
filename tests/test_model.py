from __future__ import annotations

from dataclasses import replace

import pytest

from salud_diario.model import (
    EXERCISE_IDS,
    SUPPLEMENT_IDS,
    Meal,
    Meals,
    is_log_empty,
    log_from_dict,
    log_to_dict,
    make_empty_log,
    merge_flags,
    to_bool,
    to_number,
)


def test_make_empty_log_defaults() -> None:
    log = make_empty_log("2024-03-05")
    assert log.date == "2024-03-05"
    assert log.id
    assert set(log.supplements) == set(SUPPLEMENT_IDS)
    assert set(log.exercises) == set(EXERCISE_IDS)
    assert not any(log.supplements.values())
    assert all(v is None for v in log.numeric_values())
    assert log.meals == Meals()
    assert is_log_empty(log)


def test_make_empty_log_ids_are_unique() -> None:
    assert make_empty_log("2024-03-05").id != make_empty_log("2024-03-05").id
    assert make_empty_log("2024-03-05", "fixed").id == "fixed"


def test_is_log_empty_rules() -> None:
    base = make_empty_log("2024-03-05")
    assert is_log_empty(None)
    assert is_log_empty(replace(base, custom_vitamin_name="Zinc"))
    assert is_log_empty(replace(base, custom_vitamin_taken=True))
    with_text = replace(base, notes="tired", meals=Meals(lunch=Meal("13:00", "rice")))
    assert is_log_empty(with_text)
    assert not is_log_empty(
        replace(base, custom_vitamin_name="Zinc", custom_vitamin_taken=True)
    )
    assert not is_log_empty(replace(base, water_fasted=True))
    assert not is_log_empty(replace(base, weight=0.0))
    assert not is_log_empty(
        replace(base, exercises={**base.exercises, "treadmill": True})
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("", None),
        ("  ", None),
        ("abc", None),
        ("nan", None),
        ("inf", None),
        (float("nan"), None),
        (True, None),
        ("70,5", 70.5),
        (" 70.5 ", 70.5),
        (5, 5.0),
        (0, 0.0),
    ],
)
def test_to_number(raw: object, expected: float | None) -> None:
    assert to_number(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1", True),
        ("TRUE", True),
        ("Yes", True),
        ("0", False),
        ("no", False),
        ("", False),
        (None, False),
        (True, True),
        (1, True),
        (2, False),
    ],
)
def test_to_bool(raw: object, expected: bool) -> None:
    assert to_bool(raw) is expected


def test_merge_flags_defaults_and_keeps_unknown() -> None:
    merged = merge_flags(("a", "b"), {"a": "yes", "zzz": True})
    assert merged.flags == {"a": True, "b": False, "zzz": True}
    assert merged.unknown == frozenset({"zzz"})

    empty = merge_flags(("a", "b"), None)
    assert empty.flags == {"a": False, "b": False}
    assert empty.unknown == frozenset()


def test_log_from_dict_fills_missing_fields() -> None:
    log = log_from_dict(
        {
            "date": "2024-03-05",
            "supplements": {"vitamin_d3": True},
            "weight": "70,5",
            "waist_size": "",
            "fasted": 1,
        }
    )
    assert log.supplements["vitamin_d3"] is True
    assert log.supplements["magnesium"] is False
    assert log.exercises == {eid: False for eid in EXERCISE_IDS}
    assert log.weight == 70.5
    assert log.waist_size is None
    assert log.fasted is True
    assert log.meals == Meals()


def test_log_from_dict_requires_date() -> None:
    with pytest.raises(ValueError):
        log_from_dict({"weight": 70})
    assert log_from_dict({}, date="2024-03-05").date == "2024-03-05"


def test_log_dict_shape_is_stable() -> None:
    log = replace(
        make_empty_log("2024-03-05"),
        weight=70.5,
        notes="ok",
        meals=Meals(breakfast=Meal("08:00", "eggs")),
    )
    data = log_to_dict(log)
    assert data["meals"]["breakfast"] == {"time": "08:00", "text": "eggs"}
    assert data["meals"]["dinner"] == {"time": "", "text": ""}
    assert log_from_dict(data) == log
