from __future__ import annotations

import asyncio

import pytest

from salud_diario.autosave import (
    AutosaveController,
    AutosaveState,
    FormValues,
    apply_form,
    form_from_log,
    load_for_edit,
    save_current,
)
from salud_diario.model import Meal, Meals, make_empty_log
from salud_diario.storage import LogStorage
from tests.helpers import MemoryBackend


def _storage() -> tuple[LogStorage, MemoryBackend]:
    primary = MemoryBackend("primary")
    return LogStorage(primary, MemoryBackend("fallback")), primary


def test_rapid_edits_coalesce_into_one_save() -> None:
    saves: list[int] = []

    async def run() -> None:
        async def save() -> None:
            saves.append(1)

        controller = AutosaveController(save, delay_ms=50)
        for _ in range(5):
            controller.mark_dirty()
            await asyncio.sleep(0.001)
        assert controller.state is AutosaveState.SCHEDULED
        await controller.wait_idle()
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert saves == [1]


def test_edit_during_save_triggers_exactly_one_more_save() -> None:
    current = {"weight": "70"}
    saved: list[str] = []
    active = 0
    peak = 0

    async def run() -> None:
        nonlocal active, peak
        started = asyncio.Event()
        gate = asyncio.Event()

        async def save() -> None:
            nonlocal active, peak
            value = current["weight"]
            active += 1
            peak = max(peak, active)
            started.set()
            await gate.wait()
            saved.append(value)
            active -= 1

        controller = AutosaveController(save, delay_ms=5)
        controller.mark_dirty()
        await started.wait()
        assert controller.state is AutosaveState.SAVING

        current["weight"] = "71"
        controller.mark_dirty()
        controller.mark_dirty()
        controller.run_autosave()
        assert controller.state is AutosaveState.SAVING_PENDING_RETRY

        gate.set()
        await controller.wait_idle()

    asyncio.run(run())
    assert saved == ["70", "71"]
    assert peak == 1


def test_hydration_suppresses_autosave() -> None:
    saves: list[int] = []

    async def run() -> None:
        async def save() -> None:
            saves.append(1)

        controller = AutosaveController(save, delay_ms=10)
        controller.mark_dirty()
        with controller.hydrate():
            assert controller.hydrating
            assert controller.state is AutosaveState.IDLE
            controller.mark_dirty()
            controller.run_autosave()
            assert controller.state is AutosaveState.IDLE
        assert not controller.hydrating
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert saves == []


def test_failed_save_is_logged_and_next_edit_retries(
    caplog: pytest.LogCaptureFixture,
) -> None:
    attempts: list[int] = []

    async def run() -> None:
        async def save() -> None:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("disk full")

        controller = AutosaveController(save, delay_ms=1)
        controller.mark_dirty()
        await controller.wait_idle()
        assert controller.state is AutosaveState.IDLE

        controller.mark_dirty()
        await controller.wait_idle()

    with caplog.at_level("WARNING"):
        asyncio.run(run())
    assert len(attempts) == 2
    assert "Autosave failed" in caplog.text
    assert "disk full" in caplog.text


def test_flush_saves_without_waiting_for_the_delay() -> None:
    results: list[str] = []

    async def run() -> None:
        async def save() -> str:
            return "ok"

        controller = AutosaveController(
            save, delay_ms=60_000, on_saved=results.append
        )
        controller.mark_dirty()
        await asyncio.wait_for(controller.flush(), timeout=1)
        assert controller.state is AutosaveState.IDLE

        controller.mark_dirty()
        controller.close()
        assert controller.state is AutosaveState.IDLE

    asyncio.run(run())
    assert results == ["ok"]


def test_save_current_skips_new_empty_record() -> None:
    storage, primary = _storage()

    result = asyncio.run(save_current(storage, FormValues(date="2025-01-02")))

    assert result.saved is False
    assert result.log.date == "2025-01-02"
    assert primary.logs == {}


def test_save_current_keeps_id_and_overwrites_existing() -> None:
    storage, primary = _storage()

    async def run() -> None:
        first = await save_current(
            storage,
            FormValues(
                date="2025-01-02",
                supplements={"vitamin_d3": True},
                numbers={"weight": "70,5"},
                notes="ok",
            ),
        )
        assert first.saved
        second = await save_current(storage, FormValues(date="2025-01-02"))
        assert second.saved
        assert second.log.id == first.log.id
        assert second.log.supplements["vitamin_d3"] is True
        assert second.log.weight is None
        assert second.log.notes == ""

    asyncio.run(run())
    assert list(primary.logs) == ["2025-01-02"]


def test_apply_form_rejects_unknown_numeric_field() -> None:
    with pytest.raises(ValueError):
        apply_form(
            make_empty_log("2025-01-02"),
            FormValues(date="2025-01-02", numbers={"height": 180}),
        )


def test_apply_form_normalizes_values() -> None:
    base = make_empty_log("2025-01-02")
    log = apply_form(
        base,
        FormValues(
            date="2025-01-02",
            exercises={"treadmill": True, "not_in_catalog": True},
            custom_vitamin_name="  Zinc ",
            custom_vitamin_taken=True,
            numbers={"weight": "abc", "waist_size": "80"},
            meals=Meals(dinner=Meal("21:00", "soup")),
        ),
    )
    assert log.id == base.id
    assert log.exercises["treadmill"] is True
    assert log.exercises["not_in_catalog"] is True
    assert log.custom_vitamin_name == "Zinc"
    assert log.weight is None
    assert log.waist_size == 80.0
    assert log.meals.dinner.text == "soup"


def test_load_for_edit_returns_default_without_persisting() -> None:
    storage, primary = _storage()

    log = asyncio.run(load_for_edit(storage, "2025-01-02"))

    assert log.date == "2025-01-02"
    assert primary.logs == {}
    assert form_from_log(log).numbers["weight"] is None
