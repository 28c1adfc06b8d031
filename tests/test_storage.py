from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from salud_diario.model import make_empty_log
from salud_diario.storage import LogStorage, StorageMode, open_storage
from tests.helpers import MemoryBackend, RecordingSleep


def test_open_storage_uses_sqlite_and_upserts(tmp_path: Path) -> None:
    storage = open_storage(tmp_path)
    log = replace(make_empty_log("2025-01-02"), weight=70.5)

    async def run() -> None:
        await storage.put(log)
        await storage.put(log)
        assert await storage.get("2025-01-02") == log
        assert len(await storage.list_all()) == 1

    asyncio.run(run())
    assert storage.mode is StorageMode.PRIMARY
    assert (tmp_path / "salud_diario.sqlite3").exists()


def test_open_is_retried_with_linear_backoff() -> None:
    primary = MemoryBackend("primary", open_failures=2)
    fallback = MemoryBackend("fallback")
    sleep = RecordingSleep()
    storage = LogStorage(primary, fallback, sleep=sleep)

    asyncio.run(storage.put(make_empty_log("2025-01-02")))

    assert primary.open_calls == 3
    assert sleep.delays == [0.15, 0.3]
    assert storage.mode is StorageMode.PRIMARY
    assert "2025-01-02" in primary.logs
    assert fallback.logs == {}


def test_open_failure_downgrades_and_reissues_on_fallback(
    caplog: pytest.LogCaptureFixture,
) -> None:
    primary = MemoryBackend("primary", open_failures=10)
    fallback = MemoryBackend("fallback")
    sleep = RecordingSleep()
    storage = LogStorage(primary, fallback, open_attempts=3, sleep=sleep)

    with caplog.at_level("WARNING"):
        asyncio.run(storage.put(make_empty_log("2025-01-02")))

    assert primary.open_calls == 3
    assert sleep.delays == [0.15, 0.3]
    assert storage.mode is StorageMode.FALLBACK
    assert "2025-01-02" in fallback.logs
    assert "Switching to fallback storage" in caplog.text


def test_operation_failure_downgrades_once_without_primary_retry() -> None:
    primary = MemoryBackend("primary", fail_ops={"put"})
    fallback = MemoryBackend("fallback")
    storage = LogStorage(primary, fallback, sleep=RecordingSleep())

    async def run() -> None:
        await storage.put(make_empty_log("2025-01-02"))
        assert await storage.get("2025-01-02") is not None
        await storage.delete("2025-01-02")
        assert await storage.list_all() == []
        await storage.clear()

    asyncio.run(run())

    assert storage.mode is StorageMode.FALLBACK
    assert primary.calls == ["put"]
    assert fallback.calls == ["put", "get", "delete", "list_all", "clear"]


def test_downgrade_is_permanent_for_unrelated_operations() -> None:
    primary = MemoryBackend("primary", fail_ops={"list_all"})
    fallback = MemoryBackend("fallback")
    storage = LogStorage(primary, fallback, sleep=RecordingSleep())

    async def run() -> None:
        await storage.put(make_empty_log("2025-01-01"))
        assert storage.mode is StorageMode.PRIMARY
        assert await storage.list_all() == []
        for day in ("2025-01-02", "2025-01-03"):
            await storage.put(make_empty_log(day))
            assert storage.mode is StorageMode.FALLBACK

    asyncio.run(run())

    assert primary.calls == ["put", "list_all"]
    assert set(fallback.logs) == {"2025-01-02", "2025-01-03"}
    assert primary.open_calls == 1


def test_sqlite_errors_also_trigger_downgrade() -> None:
    primary = MemoryBackend(
        "primary", fail_ops={"get"}, error=sqlite3.OperationalError
    )
    fallback = MemoryBackend("fallback")
    storage = LogStorage(primary, fallback, sleep=RecordingSleep())

    assert asyncio.run(storage.get("2025-01-02")) is None
    assert storage.mode is StorageMode.FALLBACK
    assert fallback.calls == ["get"]


def test_fallback_errors_propagate() -> None:
    primary = MemoryBackend("primary", fail_ops={"put"})
    fallback = MemoryBackend("fallback", fail_ops={"put"}, error=OSError)
    storage = LogStorage(primary, fallback, sleep=RecordingSleep())

    with pytest.raises(OSError):
        asyncio.run(storage.put(make_empty_log("2025-01-02")))


def test_unusable_data_dir_degrades_to_blob(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    storage = open_storage(data_dir, open_backoff_ms=0)
    (data_dir / "salud_diario.sqlite3").mkdir(parents=True)

    async def run() -> None:
        await storage.put(replace(make_empty_log("2025-01-02"), fasted=True))
        rows = await storage.list_all()
        assert [log.date for log in rows] == ["2025-01-02"]

    asyncio.run(run())
    assert storage.mode is StorageMode.FALLBACK
    assert (data_dir / "health_tracker_logs_v1.json").exists()


def test_open_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        LogStorage(MemoryBackend(), MemoryBackend(), open_attempts=0)


def test_corrupt_sqlite_row_downgrades_to_fallback(tmp_path: Path) -> None:
    storage = open_storage(tmp_path)
    asyncio.run(storage.put(make_empty_log("2025-01-02")))
    conn = sqlite3.connect(tmp_path / "salud_diario.sqlite3")
    with conn:
        conn.execute("UPDATE logs SET payload = ?", ('{"id": "x"}',))
    conn.close()

    assert asyncio.run(storage.list_all()) == []
    assert storage.mode is StorageMode.FALLBACK
