"""Timer record and state derivation: pure logic, no I/O.

Every surface (foreground UI, widget timeline, live display, companion) derives
what to show from a point-in-time TimerRecord plus the current wall-clock time.
The time source is always passed in, never read here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


DEFAULT_DURATION_S = 25 * 60.0  # sticky preference before any fresh start
MAX_DURATION_S = 24 * 60 * 60.0
MAX_DURATION_MINUTES = int(MAX_DURATION_S // 60)


@dataclass(frozen=True)
class TimerRecord:
    """The single persisted source of truth for the timer."""

    state: TimerState = TimerState.IDLE
    end_date: datetime | None = None
    original_duration: float | None = None
    remaining_duration: float | None = None
    last_configured_duration: float = DEFAULT_DURATION_S

    @classmethod
    def idle(cls, last_configured_duration: float = DEFAULT_DURATION_S) -> "TimerRecord":
        return cls(last_configured_duration=last_configured_duration)

    def running(self, now: datetime, duration: float, is_resume: bool = False) -> "TimerRecord":
        return TimerRecord(
            state=TimerState.RUNNING,
            end_date=now + timedelta(seconds=duration),
            original_duration=duration,
            remaining_duration=None,
            last_configured_duration=(
                self.last_configured_duration if is_resume else duration
            ),
        )

    def paused(self, remaining: float) -> "TimerRecord":
        return replace(
            self,
            state=TimerState.PAUSED,
            end_date=None,
            remaining_duration=remaining,
        )

    def stopped(self) -> "TimerRecord":
        return TimerRecord.idle(self.last_configured_duration)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "original_duration": self.original_duration,
            "remaining_duration": self.remaining_duration,
            "last_configured_duration": self.last_configured_duration,
        }


@dataclass(frozen=True)
class DerivedState:
    display_state: TimerState
    remaining_seconds: float

    @property
    def is_active(self) -> bool:
        return self.display_state != TimerState.IDLE

    def to_dict(self) -> dict:
        return {
            "state": self.display_state.value,
            "remaining_seconds": self.remaining_seconds,
            "text": format_countdown(self.remaining_seconds),
        }


IDLE_DISPLAY = DerivedState(TimerState.IDLE, 0.0)


def derive_state(record: TimerRecord, now: datetime) -> DerivedState:
    """Compute the displayed (state, remaining) pair.

    A running record past its end date is idle for every reader (lazy expiry);
    paused time is frozen and returned verbatim. Never mutates anything.
    """
    if record.state == TimerState.RUNNING and record.end_date is not None:
        remaining = (record.end_date - now).total_seconds()
        if remaining > 0:
            return DerivedState(TimerState.RUNNING, remaining)
        return IDLE_DISPLAY

    if record.state == TimerState.PAUSED and record.remaining_duration is not None:
        return DerivedState(TimerState.PAUSED, record.remaining_duration)

    return IDLE_DISPLAY


def is_expired(record: TimerRecord, now: datetime) -> bool:
    """True when the record says running but its end date has passed."""
    return (
        record.state == TimerState.RUNNING
        and record.end_date is not None
        and record.end_date <= now
    )


def format_countdown(seconds: float) -> str:
    """Format remaining seconds as 'MM:SS' or 'H:MM:SS', rounding up like a countdown."""
    total = max(0, math.ceil(seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
