"""Timer state store: the one shared, durable record every process reads.

Storage is a namespaced key/value table in a SQLite file that every process on
the device opens directly. Reads never fail: if storage is unavailable the idle
default is returned so no surface ever crashes on a read.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

import aiosqlite

from .timer import DEFAULT_DURATION_S, TimerRecord, TimerState

logger = logging.getLogger("pomodoro_cube.store")

KEY_TIMER_STATE = "timerState"
KEY_TIMER_END_DATE = "timerEndDate"
KEY_ORIGINAL_DURATION = "originalDuration"
KEY_REMAINING_DURATION = "remainingDuration"
KEY_LAST_CONFIGURED_DURATION = "lastConfiguredDuration"


class TimerStore(Protocol):
    async def read(self) -> TimerRecord: ...

    async def write(self, record: TimerRecord) -> None: ...


def record_to_values(record: TimerRecord) -> dict[str, str]:
    """Flatten a record into the persisted key/value bag (absent keys omitted)."""
    values = {
        KEY_TIMER_STATE: record.state.value,
        KEY_LAST_CONFIGURED_DURATION: repr(float(record.last_configured_duration)),
    }
    if record.end_date is not None:
        values[KEY_TIMER_END_DATE] = repr(record.end_date.timestamp())
    if record.original_duration is not None:
        values[KEY_ORIGINAL_DURATION] = repr(float(record.original_duration))
    if record.remaining_duration is not None:
        values[KEY_REMAINING_DURATION] = repr(float(record.remaining_duration))
    return values


def _parse_float(values: dict[str, str], key: str) -> Optional[float]:
    raw = values.get(key)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        logger.warning(f"Ignoring unparsable {key}={raw!r}")
        return None
    return value


def _parse_timestamp(values: dict[str, str], key: str) -> Optional[datetime]:
    ts = _parse_float(values, key)
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning(f"Ignoring out-of-range {key}={ts!r}")
        return None


def values_to_record(values: dict[str, str]) -> TimerRecord:
    """Rebuild a record from the key/value bag; missing or corrupt keys read as absent."""
    try:
        state = TimerState(values.get(KEY_TIMER_STATE, TimerState.IDLE.value))
    except ValueError:
        logger.warning(f"Unknown timer state {values.get(KEY_TIMER_STATE)!r}, reading as idle")
        state = TimerState.IDLE

    last = _parse_float(values, KEY_LAST_CONFIGURED_DURATION)
    return TimerRecord(
        state=state,
        end_date=_parse_timestamp(values, KEY_TIMER_END_DATE),
        original_duration=_parse_float(values, KEY_ORIGINAL_DURATION),
        remaining_duration=_parse_float(values, KEY_REMAINING_DURATION),
        last_configured_duration=last if last is not None else DEFAULT_DURATION_S,
    )


class MemoryTimerStore:
    """In-process store holding the same key/value bag as the SQLite store."""

    def __init__(self, record: Optional[TimerRecord] = None):
        self.values: dict[str, str] = record_to_values(record) if record else {}
        self.writes = 0

    async def read(self) -> TimerRecord:
        return values_to_record(self.values)

    async def write(self, record: TimerRecord) -> None:
        self.values = record_to_values(record)
        self.writes += 1


async def get_db(db_path: Path) -> aiosqlite.Connection:
    """Get a database connection with busy_timeout configured."""
    db = await aiosqlite.connect(db_path)
    await db.execute("PRAGMA busy_timeout=5000")
    return db


async def init_store(db_path: Path) -> None:
    """Create the shared key/value table. Safe to call from every process."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        # WAL keeps readers in other processes from blocking on a writer
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute("""
            CREATE TABLE IF NOT EXISTS timer_defaults (
                namespace TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (namespace, key)
            )
        """)
        await db.commit()


class SqliteTimerStore:
    """Shared durable store keyed by a fixed namespace (the app group)."""

    def __init__(self, db_path: Path, namespace: str):
        self.db_path = db_path
        self.namespace = namespace

    async def read(self) -> TimerRecord:
        try:
            db = await get_db(self.db_path)
            try:
                cursor = await db.execute(
                    "SELECT key, value FROM timer_defaults WHERE namespace = ?",
                    (self.namespace,),
                )
                rows = await cursor.fetchall()
            finally:
                await db.close()
        except (aiosqlite.Error, OSError) as e:
            logger.warning(f"Timer store unavailable ({e}); reading as idle")
            return TimerRecord.idle()
        return values_to_record({key: value for key, value in rows})

    async def write(self, record: TimerRecord) -> None:
        """Replace the whole record in a single transaction (last writer wins)."""
        values = record_to_values(record)
        updated_at = datetime.now(timezone.utc).isoformat()
        db = await get_db(self.db_path)
        try:
            await db.execute(
                "DELETE FROM timer_defaults WHERE namespace = ?", (self.namespace,)
            )
            await db.executemany(
                """INSERT INTO timer_defaults (namespace, key, value, updated_at)
                   VALUES (?, ?, ?, ?)""",
                [(self.namespace, key, value, updated_at) for key, value in values.items()],
            )
            await db.commit()
        finally:
            await db.close()
