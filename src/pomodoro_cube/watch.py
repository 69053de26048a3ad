"""
Pomodoro Cube companion: small FastAPI app for the paired device.

Receives best-effort context pushes from the host and runs its own local timer
with its own presets. It never reads the shared store, so its timer can
diverge from the phone's; that is accepted.

Endpoints:
    GET  /health     heartbeat
    POST /context    receive the phone's latest timer context
    GET  /context    phone timer as derived from the latest context
    GET  /state      local companion timer
    POST /select     select a local face by index
    POST /next       next face
    POST /previous   previous face
    POST /start      start the local timer
    POST /stop       stop the local timer
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .companion import CompanionMessage, as_utc
from .controller import utcnow
from .faces import COMPANION_FACES, CubeFace
from .timer import DerivedState, IDLE_DISPLAY, TimerState, derive_state

logger = logging.getLogger("pomodoro_cube.watch")


class WatchCubeModel:
    """Local presets and a one-second countdown, independent of the phone."""

    def __init__(self, faces: tuple[CubeFace, ...] = COMPANION_FACES):
        self.faces = list(faces)
        self.current_face_index = 0
        self.is_running = False
        self.time_remaining = 0.0
        self._completion_callbacks: list[Callable[[CubeFace], None]] = []

    @property
    def current_face(self) -> CubeFace:
        return self.faces[self.current_face_index]

    def on_complete(self, callback: Callable[[CubeFace], None]) -> None:
        self._completion_callbacks.append(callback)

    def select_face(self, index: int) -> bool:
        if not 0 <= index < len(self.faces):
            return False
        self.current_face_index = index
        return True

    def next_face(self) -> None:
        self.select_face((self.current_face_index + 1) % len(self.faces))

    def previous_face(self) -> None:
        self.select_face((self.current_face_index - 1 + len(self.faces)) % len(self.faces))

    def start_timer(self) -> bool:
        if self.is_running:
            return False
        self.is_running = True
        self.time_remaining = self.current_face.duration
        return True

    def stop_timer(self) -> None:
        self.is_running = False
        self.time_remaining = 0.0

    def tick(self) -> None:
        """Advance one second; reaching zero completes and stops the timer."""
        if not self.is_running:
            return
        self.time_remaining = max(0.0, self.time_remaining - 1)
        if self.time_remaining > 0:
            return
        face = self.current_face
        self.stop_timer()
        logger.info(f"Companion timer complete: {face.name}")
        for callback in self._completion_callbacks:
            callback(face)

    def to_dict(self) -> dict:
        return {
            "faces": [face.to_dict() for face in self.faces],
            "current_face": self.current_face.to_dict(),
            "is_running": self.is_running,
            "time_remaining": self.time_remaining,
        }


class PhoneContext:
    """Most recent context pushed by the phone. Older pushes never win."""

    def __init__(self):
        self.message: Optional[CompanionMessage] = None

    def receive(self, message: CompanionMessage) -> bool:
        if self.message is not None and message.sent_at < self.message.sent_at:
            logger.debug("Ignoring out-of-order companion push")
            return False
        self.message = message
        return True

    def display(self, now: datetime) -> DerivedState:
        if self.message is None:
            return IDLE_DISPLAY
        return derive_state(self.message.to_record(), now)


class ContextPush(BaseModel):
    """Wire form of a CompanionMessage; field names match the phone payload."""

    state: TimerState
    endDate: Optional[datetime] = None
    originalDuration: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    remaining: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    sentAt: Optional[datetime] = None

    def to_message(self, received_at: datetime) -> CompanionMessage:
        return CompanionMessage(
            state=self.state,
            end_date=as_utc(self.endDate) if self.endDate else None,
            original_duration=self.originalDuration,
            remaining=self.remaining,
            sent_at=as_utc(self.sentAt) if self.sentAt else received_at,
        )


class SelectRequest(BaseModel):
    index: int


def create_companion_app(clock: Callable[[], datetime] = utcnow,
                         tick_seconds: float = 1.0) -> FastAPI:
    model = WatchCubeModel()
    context = PhoneContext()
    scheduler = AsyncIOScheduler()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler.add_job(model.tick, trigger=IntervalTrigger(seconds=tick_seconds),
                          id="watch_tick", replace_existing=True, name="Companion tick")
        scheduler.start()
        logger.info("Companion ready")
        yield
        scheduler.shutdown(wait=False)

    app = FastAPI(title="Pomodoro Cube Companion", version="0.1.0", lifespan=lifespan)
    app.state.model = model
    app.state.context = context

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/context")
    async def receive_context(push: ContextPush):
        accepted = context.receive(push.to_message(clock()))
        return {"accepted": accepted}

    @app.get("/context")
    async def get_context():
        message = context.message
        return {
            "received": message.to_payload() if message else None,
            "display": context.display(clock()).to_dict(),
        }

    @app.get("/state")
    async def get_state():
        return model.to_dict()

    @app.post("/select")
    async def select(request: SelectRequest):
        if not model.select_face(request.index):
            raise HTTPException(status_code=404, detail=f"No face at index {request.index}")
        return model.to_dict()

    @app.post("/next")
    async def next_face():
        model.next_face()
        return model.to_dict()

    @app.post("/previous")
    async def previous_face():
        model.previous_face()
        return model.to_dict()

    @app.post("/start")
    async def start():
        model.start_timer()
        return model.to_dict()

    @app.post("/stop")
    async def stop():
        model.stop_timer()
        return model.to_dict()

    return app
