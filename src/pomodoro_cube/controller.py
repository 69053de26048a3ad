"""Timer control API: start, pause, resume, stop.

Each operation is a whole-record read-modify-write on the shared store,
followed by fan-out once the write is durable. Invalid preconditions degrade
to a no-op or to the nearest valid transition; nothing here raises for them.
Writers are last-writer-wins with no version check.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .fanout import NotificationFanout
from .store import TimerStore
from .timer import MAX_DURATION_S, DerivedState, TimerRecord, TimerState, derive_state

logger = logging.getLogger("pomodoro_cube.controller")


class TransitionKind(str, Enum):
    STARTED = "started"
    RESUMED = "resumed"
    PAUSED = "paused"
    STOPPED = "stopped"
    NOOP = "noop"


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    previous: TimerRecord
    record: TimerRecord
    persisted: bool = True

    def to_dict(self) -> dict:
        return {"transition": self.kind.value, "state": self.record.state.value,
                "persisted": self.persisted}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerController:
    def __init__(self, store: TimerStore, fanout: Optional[NotificationFanout] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.fanout = fanout or NotificationFanout()
        self._clock = clock

    async def start(self, duration: float, is_resume: bool = False) -> Transition:
        """Start (or replace) a run. Fresh starts become the sticky preference."""
        previous = await self.store.read()
        if not (math.isfinite(duration) and 0 < duration <= MAX_DURATION_S):
            logger.warning(f"Start ignored, duration {duration!r}s is out of range")
            return Transition(TransitionKind.NOOP, previous, previous, persisted=False)
        record = previous.running(self._clock(), duration, is_resume=is_resume)
        kind = TransitionKind.RESUMED if is_resume else TransitionKind.STARTED
        logger.info(f"Timer {kind.value}: {duration:.0f}s, ends {record.end_date.isoformat()}")
        return await self._commit(kind, previous, record)

    async def pause(self) -> Transition:
        previous = await self.store.read()
        if previous.state != TimerState.RUNNING or previous.end_date is None:
            logger.debug(f"Pause ignored, timer is {previous.state.value}")
            return Transition(TransitionKind.NOOP, previous, previous, persisted=False)

        remaining = (previous.end_date - self._clock()).total_seconds()
        if remaining <= 0:
            # Already finished: pausing a finished timer stops it
            return await self.stop()

        logger.info(f"Timer paused with {remaining:.1f}s remaining")
        return await self._commit(TransitionKind.PAUSED, previous, previous.paused(remaining))

    async def resume(self) -> Transition:
        previous = await self.store.read()
        remaining = previous.remaining_duration
        if previous.state != TimerState.PAUSED or not remaining or remaining <= 0:
            logger.debug(f"Resume ignored, timer is {previous.state.value}")
            return Transition(TransitionKind.NOOP, previous, previous, persisted=False)
        return await self.start(remaining, is_resume=True)

    async def stop(self) -> Transition:
        previous = await self.store.read()
        logger.info("Timer stopped")
        return await self._commit(TransitionKind.STOPPED, previous, previous.stopped())

    async def last_duration(self) -> float:
        return (await self.store.read()).last_configured_duration

    async def start_last(self) -> Transition:
        return await self.start(await self.last_duration())

    async def snapshot(self) -> tuple[TimerRecord, DerivedState]:
        record = await self.store.read()
        return record, derive_state(record, self._clock())

    async def _commit(self, kind: TransitionKind, previous: TimerRecord,
                      record: TimerRecord) -> Transition:
        try:
            await self.store.write(record)
        except Exception as e:
            # Fan-out only follows a durable mutation
            logger.error(f"Timer store write failed, skipping fan-out: {e}")
            return Transition(kind, previous, record, persisted=False)

        await self.fanout.dispatch(record)
        return Transition(kind, previous, record)
