"""
Pomodoro Cube host service: FastAPI local server for the shared timer

This server provides:
- Timer control (start / pause / resume / stop) and background actions
- The home-screen widget host and its timelines
- The lock-screen live display host
- The foreground cube model (face selection, polling)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .companion import CompanionChannel
from .config import Settings
from .controller import TimerController, utcnow
from .faces import CubeMode, find_by_name
from .fanout import NotificationFanout
from .intents import INTENTS, IntentParameterError, UnknownIntentError, run_intent
from .live_activity import LiveActivityCenter, render_text
from .logs import (
    asyncio_exception_handler,
    install_crash_handlers,
    mark_crash_log,
    recent_logs,
)
from .observer import Completion, CubeTimerModel
from .store import SqliteTimerStore, init_store
from .timer import MAX_DURATION_MINUTES, MAX_DURATION_S
from .widget import WIDGET_KIND, WidgetCenter

logger = logging.getLogger("pomodoro_cube.server")


# Pydantic Models
class StartRequest(BaseModel):
    minutes: Optional[int] = Field(None, gt=0, le=MAX_DURATION_MINUTES)
    seconds: Optional[float] = Field(None, gt=0, le=MAX_DURATION_S)


class IntentRequest(BaseModel):
    minutes: Optional[int] = Field(None, gt=0, le=MAX_DURATION_MINUTES)


class ModeRequest(BaseModel):
    mode: CubeMode


class SelectFaceRequest(BaseModel):
    name: Optional[str] = None
    id: Optional[int] = None


class CustomDurationRequest(BaseModel):
    minutes: int = Field(gt=0, le=MAX_DURATION_MINUTES)


class LiveActivityStartRequest(BaseModel):
    end_date: datetime


@dataclass
class HostServices:
    settings: Settings
    store: SqliteTimerStore
    scheduler: AsyncIOScheduler
    widgets: WidgetCenter
    live_activities: LiveActivityCenter
    controller: TimerController
    model: CubeTimerModel
    last_completion: Optional[Completion] = None


def build_services(settings: Settings, clock: Callable[[], datetime] = utcnow) -> HostServices:
    store = SqliteTimerStore(settings.db_path, settings.namespace)
    scheduler = AsyncIOScheduler()
    widgets = WidgetCenter(store, clock=clock, scheduler=scheduler)
    live_activities = LiveActivityCenter(settings.live_activities_enabled, clock=clock)
    fanout = NotificationFanout(
        widgets=widgets,
        live_activities=live_activities,
        companion=CompanionChannel(settings.companion_url, timeout=settings.http_timeout),
    )
    controller = TimerController(store, fanout, clock=clock)
    model = CubeTimerModel(store, controller, clock=clock, scheduler=scheduler,
                           poll_interval=settings.poll_interval)
    services = HostServices(settings, store, scheduler, widgets, live_activities, controller, model)

    def _record_completion(completion: Completion) -> None:
        services.last_completion = completion
        face = completion.face.name if completion.face else "timer"
        logger.info(f"{face} {completion.reason.value}")

    model.on_complete(_record_completion)
    return services


def _model_state(services: HostServices) -> dict:
    model = services.model
    completion = services.last_completion
    return {
        "mode": model.current_mode.value,
        "faces": [face.to_dict() for face in model.faces],
        "current_face": model.current_face.to_dict() if model.current_face else None,
        "state": model.display_state.value,
        "time_remaining": model.time_remaining,
        "polling": model.is_polling,
        "last_completion": {
            "face": completion.face.name if completion.face else None,
            "reason": completion.reason.value,
        } if completion else None,
    }


def create_app(settings: Optional[Settings] = None,
               clock: Callable[[], datetime] = utcnow) -> FastAPI:
    settings = settings or Settings.from_env()
    services = build_services(settings, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        asyncio.get_running_loop().set_exception_handler(asyncio_exception_handler)
        install_crash_handlers(settings.crash_log_path)
        mark_crash_log("HOST STARTED")

        await init_store(settings.db_path)
        services.scheduler.start()
        services.widgets.register(WIDGET_KIND)
        await services.widgets.reload_all_timelines()
        await services.model.restore_state()
        logger.info(f"Host ready, store at {settings.db_path} ({settings.namespace})")
        yield

        mark_crash_log("HOST STOPPING")
        services.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    app = FastAPI(
        title="Pomodoro Cube",
        description="Local host for the shared Pomodoro Cube timer",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def _timer_response(transition=None) -> dict:
        record, display = await services.controller.snapshot()
        response = {"record": record.to_dict(), "display": display.to_dict()}
        if transition is not None:
            response.update(transition.to_dict())
        return response

    # ============ Health & Logs ============

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "namespace": settings.namespace}

    @app.get("/api/logs/recent")
    async def get_recent_logs(limit: int = 50):
        return {"logs": recent_logs(limit)}

    # ============ Timer Control ============

    @app.get("/api/timer")
    async def get_timer():
        return await _timer_response()

    @app.post("/api/timer/start")
    async def start_timer(request: StartRequest = None):
        request = request or StartRequest()
        if request.seconds is not None:
            transition = await services.controller.start(request.seconds)
        elif request.minutes is not None:
            transition = await services.controller.start(float(request.minutes * 60))
        else:
            transition = await services.controller.start_last()
        await services.model.poll()
        return await _timer_response(transition)

    @app.post("/api/timer/pause")
    async def pause_timer():
        transition = await services.controller.pause()
        await services.model.poll()
        return await _timer_response(transition)

    @app.post("/api/timer/resume")
    async def resume_timer():
        transition = await services.controller.resume()
        await services.model.poll()
        return await _timer_response(transition)

    @app.post("/api/timer/stop")
    async def stop_timer():
        transition = await services.controller.stop()
        await services.model.poll()
        return await _timer_response(transition)

    # ============ Background Actions ============

    @app.get("/api/intents")
    async def list_intents():
        return [
            {"name": intent.name, "title": intent.title, "description": intent.description,
             "params": list(intent.params), "open_app_when_run": intent.open_app_when_run}
            for intent in INTENTS.values()
        ]

    @app.post("/api/intents/{name}")
    async def perform_intent(name: str, request: IntentRequest = None):
        params = {}
        if request is not None and request.minutes is not None:
            params["minutes"] = request.minutes
        try:
            transition = await run_intent(name, services.controller, **params)
        except UnknownIntentError:
            raise HTTPException(status_code=404, detail=f"Unknown intent: {name}")
        except IntentParameterError as e:
            raise HTTPException(status_code=422, detail=str(e))
        await services.model.poll()
        return await _timer_response(transition)

    # ============ Cube Faces ============

    @app.get("/api/faces")
    async def get_faces():
        return _model_state(services)

    @app.post("/api/faces/mode")
    async def change_mode(request: ModeRequest):
        await services.model.change_mode(request.mode)
        return _model_state(services)

    @app.post("/api/faces/select")
    async def select_face(request: SelectFaceRequest):
        faces = services.model.faces
        if request.name is not None:
            face = find_by_name(faces, request.name)
        else:
            face = next((f for f in faces if f.id == request.id), None)
        if face is None:
            raise HTTPException(status_code=404, detail="Face not found")
        await services.model.select(face)
        return _model_state(services)

    @app.post("/api/faces/custom")
    async def update_custom_duration(request: CustomDurationRequest):
        await services.model.update_custom_duration(request.minutes)
        return _model_state(services)

    # ============ Widget Host ============

    @app.get("/api/widgets/timeline")
    async def get_widget_timeline(kind: str = WIDGET_KIND):
        if kind not in services.widgets.kinds:
            raise HTTPException(status_code=404, detail=f"Unknown widget kind: {kind}")
        timeline = services.widgets.timeline(kind) or await services.widgets.reload_timeline(kind)
        return timeline.to_dict()

    @app.post("/api/system/widgets/reload")
    async def reload_widgets():
        await services.widgets.reload_all_timelines()
        # Another process changed the store; let the foreground model catch up
        await services.model.poll()
        return {"reloaded": services.widgets.kinds}

    # ============ Live Display Host ============

    @app.get("/api/live-activities")
    async def list_live_activities():
        now = clock()
        return [
            {**activity.to_dict(), "text": render_text(activity, now)}
            for activity in services.live_activities.activities
        ]

    @app.post("/api/system/live-activities/start")
    async def start_live_activity(request: LiveActivityStartRequest):
        activity = await services.live_activities.start(request.end_date)
        return {"started": activity.to_dict() if activity else None}

    @app.post("/api/system/live-activities/end")
    async def end_live_activities():
        return {"ended": await services.live_activities.end_all()}

    return app


app = create_app()
