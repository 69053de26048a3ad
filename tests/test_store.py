"""
Tests for the shared timer store.

SQLite tests use a temporary database per test; nothing touches the real
shared store under the home directory.
"""

from datetime import timedelta

import aiosqlite
import pytest

from pomodoro_cube.store import (
    KEY_LAST_CONFIGURED_DURATION,
    KEY_REMAINING_DURATION,
    KEY_TIMER_END_DATE,
    KEY_TIMER_STATE,
    MemoryTimerStore,
    SqliteTimerStore,
    init_store,
    record_to_values,
    values_to_record,
)
from pomodoro_cube.timer import TimerRecord, TimerState, derive_state

from conftest import T0

NAMESPACE = "group.test.pomodoro"


# ── Helpers ───────────────────────────────────────────────────


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "shared.db"


@pytest.fixture
async def sqlite_store(db_path):
    await init_store(db_path)
    return SqliteTimerStore(db_path, NAMESPACE)


async def stored_keys(db_path, namespace=NAMESPACE) -> dict:
    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute(
            "SELECT key, value FROM timer_defaults WHERE namespace = ?", (namespace,)
        )
        return dict(await cursor.fetchall())


# ── Key/value mapping ─────────────────────────────────────────


class TestValueMapping:
    def test_running_record_keys(self):
        values = record_to_values(TimerRecord().running(T0, 1500))
        assert values[KEY_TIMER_STATE] == "running"
        assert float(values[KEY_TIMER_END_DATE]) == (T0 + timedelta(seconds=1500)).timestamp()
        assert KEY_REMAINING_DURATION not in values

    def test_paused_record_keys(self):
        values = record_to_values(TimerRecord().running(T0, 1500).paused(1490))
        assert values[KEY_TIMER_STATE] == "paused"
        assert KEY_TIMER_END_DATE not in values
        assert float(values[KEY_REMAINING_DURATION]) == 1490

    def test_absent_keys_read_as_idle_default(self):
        assert values_to_record({}) == TimerRecord.idle()

    def test_unknown_state_reads_as_idle(self):
        record = values_to_record({KEY_TIMER_STATE: "exploded"})
        assert record.state == TimerState.IDLE

    @pytest.mark.parametrize("end_date", ["nan", "inf", "-inf", "1e20"])
    def test_corrupt_end_date_reads_as_absent(self, end_date):
        record = values_to_record({KEY_TIMER_STATE: "running", KEY_TIMER_END_DATE: end_date})
        assert record.end_date is None
        assert derive_state(record, T0).display_state == TimerState.IDLE

    def test_non_finite_duration_reads_as_absent(self):
        record = values_to_record({KEY_TIMER_STATE: "paused", KEY_REMAINING_DURATION: "nan",
                                   KEY_LAST_CONFIGURED_DURATION: "inf"})
        assert record.remaining_duration is None
        assert record.last_configured_duration == 1500

    def test_corrupt_number_reads_as_absent(self):
        record = values_to_record({
            KEY_TIMER_STATE: "paused",
            KEY_REMAINING_DURATION: "lots",
            KEY_LAST_CONFIGURED_DURATION: "300",
        })
        assert record.remaining_duration is None
        assert record.last_configured_duration == 300


# ── MemoryTimerStore ──────────────────────────────────────────


class TestMemoryStore:
    async def test_round_trip(self):
        store = MemoryTimerStore()
        record = TimerRecord().running(T0, 600)
        await store.write(record)
        assert await store.read() == record
        assert store.writes == 1

    async def test_starts_idle(self):
        assert await MemoryTimerStore().read() == TimerRecord.idle()

    async def test_corrupt_end_date_never_raises(self):
        store = MemoryTimerStore()
        store.values = {KEY_TIMER_STATE: "running", KEY_TIMER_END_DATE: "nan"}
        record = await store.read()
        assert record.state == TimerState.RUNNING
        assert record.end_date is None


# ── SqliteTimerStore ──────────────────────────────────────────


class TestSqliteStore:
    async def test_round_trip_running(self, sqlite_store):
        record = TimerRecord().running(T0, 1500)
        await sqlite_store.write(record)
        assert await sqlite_store.read() == record

    async def test_round_trip_paused(self, sqlite_store):
        record = TimerRecord().running(T0, 1500).paused(1490.5)
        await sqlite_store.write(record)
        assert await sqlite_store.read() == record

    async def test_write_replaces_whole_record(self, sqlite_store, db_path):
        """Keys absent from the new record are removed, not left stale."""
        await sqlite_store.write(TimerRecord().running(T0, 1500).paused(1490))
        await sqlite_store.write(TimerRecord().running(T0, 1500).stopped())
        keys = await stored_keys(db_path)
        assert set(keys) == {KEY_TIMER_STATE, KEY_LAST_CONFIGURED_DURATION}
        assert keys[KEY_TIMER_STATE] == "idle"

    async def test_namespaces_are_isolated(self, sqlite_store, db_path):
        other = SqliteTimerStore(db_path, "group.other")
        await sqlite_store.write(TimerRecord().running(T0, 60))
        assert (await other.read()).state == TimerState.IDLE

    async def test_two_handles_share_state(self, sqlite_store, db_path):
        """A second process opening the same file sees the same record."""
        await sqlite_store.write(TimerRecord().running(T0, 300))
        assert await SqliteTimerStore(db_path, NAMESPACE).read() == await sqlite_store.read()

    async def test_corrupt_end_date_in_file_reads_idle(self, sqlite_store, db_path):
        await sqlite_store.write(TimerRecord().running(T0, 1500))
        async with aiosqlite.connect(db_path) as db:
            await db.execute(
                "UPDATE timer_defaults SET value = '1e20' WHERE key = ?", (KEY_TIMER_END_DATE,)
            )
            await db.commit()
        record = await sqlite_store.read()
        assert record.end_date is None
        assert record.original_duration == 1500

    async def test_missing_table_reads_idle(self, db_path):
        store = SqliteTimerStore(db_path, NAMESPACE)
        assert await store.read() == TimerRecord.idle()

    async def test_unreachable_path_reads_idle(self, tmp_path):
        store = SqliteTimerStore(tmp_path / "missing" / "dir" / "shared.db", NAMESPACE)
        assert await store.read() == TimerRecord.idle()

    async def test_write_to_unreachable_path_raises(self, tmp_path):
        store = SqliteTimerStore(tmp_path / "missing" / "dir" / "shared.db", NAMESPACE)
        with pytest.raises(Exception):
            await store.write(TimerRecord())

    async def test_init_store_is_idempotent(self, db_path):
        await init_store(db_path)
        await init_store(db_path)
        assert await stored_keys(db_path) == {}
