"""Home-screen widget host: timelines computed from a single store read.

The widget process cannot run continuously, so each timeline is one entry plus
a refresh policy: reload exactly at the end date while running, otherwise every
15 minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.triggers.date import DateTrigger

from .intents import PAUSE, RESUME, START_FROM_IDLE
from .store import TimerStore
from .timer import (
    DEFAULT_DURATION_S,
    DerivedState,
    TimerRecord,
    TimerState,
    derive_state,
    format_countdown,
)

logger = logging.getLogger("pomodoro_cube.widget")

WIDGET_KIND = "Pomodoro_Cube"
DEFAULT_REFRESH = timedelta(minutes=15)


@dataclass(frozen=True)
class TimelineEntry:
    date: datetime
    record: TimerRecord
    display: DerivedState

    @property
    def tap_intent(self) -> str:
        """Action performed when the widget is tapped."""
        if self.display.display_state == TimerState.RUNNING:
            return PAUSE
        if self.display.display_state == TimerState.PAUSED:
            return RESUME
        return START_FROM_IDLE

    @property
    def text(self) -> str:
        if self.display.display_state == TimerState.IDLE:
            return "Ready"
        return format_countdown(self.display.remaining_seconds)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "state": self.display.display_state.value,
            "remaining_seconds": self.display.remaining_seconds,
            "end_date": self.record.end_date.isoformat() if self.record.end_date else None,
            "original_duration": self.record.original_duration,
            "text": self.text,
            "tap_intent": self.tap_intent,
        }


@dataclass(frozen=True)
class Timeline:
    entries: list[TimelineEntry]
    refresh_at: datetime

    def to_dict(self) -> dict:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "refresh_at": self.refresh_at.isoformat(),
        }


def placeholder_entry(now: datetime) -> TimelineEntry:
    record = TimerRecord(original_duration=DEFAULT_DURATION_S)
    return TimelineEntry(date=now, record=record, display=derive_state(record, now))


def build_timeline(record: TimerRecord, now: datetime) -> Timeline:
    entry = TimelineEntry(date=now, record=record, display=derive_state(record, now))
    refresh_at = now + DEFAULT_REFRESH
    if entry.display.display_state == TimerState.RUNNING:
        # Refresh exactly when the timer ends to switch to the idle look
        refresh_at = record.end_date
    return Timeline(entries=[entry], refresh_at=refresh_at)


class WidgetCenter:
    """Holds registered widget kinds and their latest timelines."""

    def __init__(self, store: TimerStore,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
                 scheduler=None):
        self.store = store
        self.scheduler = scheduler
        self._clock = clock
        self._timelines: dict[str, Optional[Timeline]] = {}

    def register(self, kind: str = WIDGET_KIND) -> None:
        self._timelines.setdefault(kind, None)

    @property
    def kinds(self) -> list[str]:
        return list(self._timelines)

    def timeline(self, kind: str = WIDGET_KIND) -> Optional[Timeline]:
        return self._timelines.get(kind)

    async def reload_timeline(self, kind: str) -> Timeline:
        now = self._clock()
        record = await self.store.read()
        timeline = build_timeline(record, now)
        self._timelines[kind] = timeline
        self._schedule_refresh(kind, timeline.refresh_at)
        return timeline

    async def reload_all_timelines(self) -> None:
        for kind in self.kinds:
            await self.reload_timeline(kind)
        logger.debug(f"Reloaded {len(self.kinds)} widget timeline(s)")

    def _schedule_refresh(self, kind: str, refresh_at: datetime) -> None:
        if self.scheduler is None:
            return
        self.scheduler.add_job(
            self.reload_timeline,
            trigger=DateTrigger(run_date=refresh_at),
            args=[kind],
            id=f"widget_{kind}",
            replace_existing=True,
            name=f"Widget refresh: {kind}",
        )
