"""Pomodoro Cube: one shared focus timer kept consistent across every surface."""

from .controller import TimerController, Transition, TransitionKind
from .store import MemoryTimerStore, SqliteTimerStore, TimerStore
from .timer import DerivedState, TimerRecord, TimerState, derive_state

__version__ = "0.1.0"

__all__ = [
    "DerivedState",
    "MemoryTimerStore",
    "SqliteTimerStore",
    "TimerController",
    "TimerRecord",
    "TimerState",
    "TimerStore",
    "Transition",
    "TransitionKind",
    "derive_state",
]
