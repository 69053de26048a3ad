"""Notification fan-out after each timer mutation.

Three independent best-effort deliveries: widget timelines, the live display
and the companion push. A failure in one never blocks the others, and nothing
is retried; the next read self-heals any stale display.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Optional, Protocol

from .companion import CompanionMessage
from .timer import TimerRecord, TimerState

logger = logging.getLogger("pomodoro_cube.fanout")


class WidgetReloader(Protocol):
    async def reload_all_timelines(self) -> None: ...


class LiveActivityHost(Protocol):
    async def start(self, end_date: datetime): ...

    async def end_all(self): ...


class CompanionSender(Protocol):
    async def send_state(self, message: CompanionMessage) -> bool: ...


class NotificationFanout:
    def __init__(self, widgets: Optional[WidgetReloader] = None,
                 live_activities: Optional[LiveActivityHost] = None,
                 companion: Optional[CompanionSender] = None):
        self.widgets = widgets
        self.live_activities = live_activities
        self.companion = companion

    async def dispatch(self, record: TimerRecord) -> dict[str, bool]:
        """Deliver the new record everywhere. Returns per-target success."""
        deliveries: dict[str, Awaitable] = {}
        if self.widgets is not None:
            deliveries["widgets"] = self.widgets.reload_all_timelines()
        if self.live_activities is not None:
            deliveries["live_activity"] = self._update_live_activity(record)
        if self.companion is not None:
            deliveries["companion"] = self.companion.send_state(
                CompanionMessage.from_record(record)
            )

        results = await asyncio.gather(
            *(self._deliver(name, coro) for name, coro in deliveries.items())
        )
        return dict(zip(deliveries, results))

    async def _update_live_activity(self, record: TimerRecord) -> None:
        await self.live_activities.end_all()
        if record.state == TimerState.RUNNING and record.end_date is not None:
            await self.live_activities.start(record.end_date)

    @staticmethod
    async def _deliver(name: str, coro: Awaitable) -> bool:
        try:
            result = await coro
        except Exception as e:
            logger.warning(f"Fan-out to {name} failed: {e}")
            return False
        return result is not False
