"""Shared fixtures: a controllable clock and recording fan-out targets."""

from datetime import datetime, timedelta, timezone

import pytest

from pomodoro_cube.controller import TimerController
from pomodoro_cube.fanout import NotificationFanout
from pomodoro_cube.live_activity import LiveActivityCenter
from pomodoro_cube.store import MemoryTimerStore

T0 = datetime(2026, 1, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, seconds_after_t0: float) -> datetime:
        self.now = T0 + timedelta(seconds=seconds_after_t0)
        return self.now


class RecordingWidgets:
    def __init__(self):
        self.reloads = 0

    async def reload_all_timelines(self) -> None:
        self.reloads += 1


class RecordingCompanion:
    def __init__(self):
        self.messages = []

    async def send_state(self, message) -> bool:
        self.messages.append(message)
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryTimerStore()


@pytest.fixture
def widgets():
    return RecordingWidgets()


@pytest.fixture
def companion():
    return RecordingCompanion()


@pytest.fixture
def live_activities(clock):
    return LiveActivityCenter(activities_enabled=True, clock=clock)


@pytest.fixture
def controller(store, widgets, live_activities, companion, clock):
    fanout = NotificationFanout(widgets=widgets, live_activities=live_activities,
                                companion=companion)
    return TimerController(store, fanout, clock=clock)
