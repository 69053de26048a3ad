"""Lock-screen live display host.

A live display is driven purely by its target end date; there is no paused
visual, so a paused timer simply has no active display.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .timer import DerivedState, TimerRecord, TimerState, derive_state, format_countdown

logger = logging.getLogger("pomodoro_cube.live_activity")

DEFAULT_TIMER_NAME = "Focus Session"


@dataclass(frozen=True)
class PomodoroAttributes:
    timer_name: str = DEFAULT_TIMER_NAME


@dataclass(frozen=True)
class ContentState:
    end_date: datetime


@dataclass
class LiveActivity:
    id: str
    attributes: PomodoroAttributes
    content_state: ContentState
    started_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timer_name": self.attributes.timer_name,
            "end_date": self.content_state.end_date.isoformat(),
            "started_at": self.started_at.isoformat(),
        }


def render(activity: LiveActivity, now: datetime) -> DerivedState:
    """What the lock screen shows: a countdown to end_date, idle once it passes."""
    record = TimerRecord(state=TimerState.RUNNING, end_date=activity.content_state.end_date)
    return derive_state(record, now)


def render_text(activity: LiveActivity, now: datetime) -> str:
    derived = render(activity, now)
    if not derived.is_active:
        return f"{activity.attributes.timer_name}: Done"
    return f"{activity.attributes.timer_name}: {format_countdown(derived.remaining_seconds)}"


class LiveActivityCenter:
    """Registry of live displays owned by the host process."""

    def __init__(self, activities_enabled: bool = True,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.activities_enabled = activities_enabled
        self._clock = clock
        self._activities: dict[str, LiveActivity] = {}

    @property
    def activities(self) -> list[LiveActivity]:
        return list(self._activities.values())

    async def start(self, end_date: datetime,
                    attributes: Optional[PomodoroAttributes] = None) -> Optional[LiveActivity]:
        """End any existing display, then request a new countdown to end_date."""
        if not self.activities_enabled:
            logger.debug("Live activities disabled, skipping start")
            return None

        await self.end_all()
        activity = LiveActivity(
            id=str(uuid.uuid4()),
            attributes=attributes or PomodoroAttributes(),
            content_state=ContentState(end_date=end_date),
            started_at=self._clock(),
        )
        self._activities[activity.id] = activity
        logger.info(f"Started live activity {activity.id[:8]} ending {end_date.isoformat()}")
        return activity

    async def end_all(self) -> int:
        ended = len(self._activities)
        self._activities.clear()
        if ended:
            logger.info(f"Ended {ended} live activit{'y' if ended == 1 else 'ies'}")
        return ended
