"""Foreground cube model: a reactive observer of the shared timer.

The model never trusts its own countdown. While a timer is visibly active it
re-reads the store on an interval and re-derives what to show, so changes made
by other processes (widget taps, background actions, CLI) are picked up. The
poll itself never writes to the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.interval import IntervalTrigger

from .controller import TimerController, utcnow
from .faces import (
    CUSTOM_FACE_NAME,
    CubeFace,
    CubeMode,
    faces_for,
    find_by_duration,
    with_custom_duration,
)
from .store import TimerStore
from .timer import DerivedState, TimerRecord, TimerState, derive_state, is_expired

logger = logging.getLogger("pomodoro_cube.observer")

POLL_JOB_ID = "cube_poll"


class CompletionReason(str, Enum):
    FINISHED = "finished"  # the run reached zero
    STOPPED = "stopped"    # stopped by another surface


@dataclass(frozen=True)
class Completion:
    face: Optional[CubeFace]
    reason: CompletionReason


class CubeTimerModel:
    def __init__(self, store: TimerStore, controller: TimerController,
                 clock: Callable[[], datetime] = utcnow,
                 scheduler=None,
                 poll_interval: float = 0.1,
                 mode: CubeMode = CubeMode.FOCUS,
                 keep_polling_when_idle: bool = False):
        self.store = store
        self.controller = controller
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self.keep_polling_when_idle = keep_polling_when_idle
        self._clock = clock

        self.current_mode = mode
        self.faces: list[CubeFace] = faces_for(mode)
        self.current_face: Optional[CubeFace] = None
        self.time_remaining: float = 0.0
        self.is_running = False
        self.is_paused = False

        self._polling = False
        self._completion_callbacks: list[Callable[[Completion], None]] = []

    # ---- Read-only views ----

    @property
    def is_active(self) -> bool:
        return self.is_running or self.is_paused

    @property
    def is_polling(self) -> bool:
        return self._polling

    @property
    def display_state(self) -> TimerState:
        if self.is_running:
            return TimerState.RUNNING
        if self.is_paused:
            return TimerState.PAUSED
        return TimerState.IDLE

    def on_complete(self, callback: Callable[[Completion], None]) -> None:
        self._completion_callbacks.append(callback)

    # ---- Reconciliation ----

    async def restore_state(self) -> DerivedState:
        """Adopt whatever timer is already active in the shared store."""
        record = await self.store.read()
        derived = derive_state(record, self._clock())
        if derived.is_active:
            self._adopt(record, derived)
            self.current_face = find_by_duration(self.faces, record.original_duration) or self.faces[0]
            self.start_polling()
        else:
            self._reset_local()
            if self.keep_polling_when_idle:
                self.start_polling()
        return derived

    async def poll(self) -> DerivedState:
        """Re-read the store and reconcile the local cache with it."""
        now = self._clock()
        record = await self.store.read()
        derived = derive_state(record, now)

        if derived.is_active:
            if derived.display_state != self.display_state:
                logger.debug(f"Adopting external state {derived.display_state.value}")
            self._adopt(record, derived)
            self.start_polling()
            return derived

        if self.is_active:
            reason = CompletionReason.FINISHED if is_expired(record, now) else CompletionReason.STOPPED
            completion = Completion(face=self.current_face, reason=reason)
            if not self.keep_polling_when_idle:
                self.stop_polling()
            self._reset_local()
            logger.info(f"Timer {reason.value}")
            for callback in self._completion_callbacks:
                callback(completion)
        return derived

    # ---- User actions ----

    async def select(self, face: CubeFace) -> None:
        """Selecting a face stops the current run and starts the face's duration."""
        await self.reset()
        self.current_face = face
        await self.start_timer(face.duration)

    async def start_timer(self, duration: float) -> None:
        await self.controller.start(duration)
        self.time_remaining = duration
        self.is_running = True
        self.is_paused = False
        self.start_polling()

    async def pause(self) -> None:
        await self.controller.pause()
        await self.poll()

    async def resume(self) -> None:
        await self.controller.resume()
        await self.poll()

    async def reset(self, update_shared: bool = True) -> None:
        if not self.keep_polling_when_idle:
            self.stop_polling()
        self._reset_local()
        if update_shared:
            await self.controller.stop()

    async def change_mode(self, mode: CubeMode) -> None:
        self.current_mode = mode
        await self.reset()
        self.faces = faces_for(mode)

    async def update_custom_duration(self, minutes: int) -> None:
        self.faces = with_custom_duration(self.faces, minutes)
        if self.current_face is not None and self.current_face.name == CUSTOM_FACE_NAME:
            custom = next(face for face in self.faces if face.name == CUSTOM_FACE_NAME)
            await self.select(custom)

    # ---- Polling ----

    def start_polling(self) -> None:
        """Schedule poll() at poll_interval. Without a scheduler the caller drives poll()."""
        if self._polling:
            return
        self._polling = True
        if self.scheduler is None:
            return
        self.scheduler.add_job(
            self.poll,
            trigger=IntervalTrigger(seconds=self.poll_interval),
            id=POLL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            name="Cube poll",
        )

    def stop_polling(self) -> None:
        if not self._polling:
            return
        self._polling = False
        if self.scheduler is None:
            return
        try:
            self.scheduler.remove_job(POLL_JOB_ID)
        except JobLookupError:
            pass

    # ---- Internal ----

    def _adopt(self, record: TimerRecord, derived: DerivedState) -> None:
        self.time_remaining = derived.remaining_seconds
        self.is_running = derived.display_state == TimerState.RUNNING
        self.is_paused = derived.display_state == TimerState.PAUSED
        if self.current_face is None:
            self.current_face = find_by_duration(self.faces, record.original_duration)

    def _reset_local(self) -> None:
        self.is_running = False
        self.is_paused = False
        self.time_remaining = 0.0
        self.current_face = None
