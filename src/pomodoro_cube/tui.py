"""
Pomodoro Cube dashboard: terminal view of the shared timer.

Reads the shared store directly (no host needed) and re-derives the display
on every poll, so starts, pauses and stops from any other surface show up
within one poll interval.
"""

import asyncio
import time
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .config import Settings
from .controller import TimerController
from .faces import CubeFace
from .observer import Completion, CompletionReason, CubeTimerModel
from .store import SqliteTimerStore
from .timer import TimerState, format_countdown

console = Console()

STATE_STYLES = {
    TimerState.RUNNING: ("RUNNING", "bold green"),
    TimerState.PAUSED: ("PAUSED", "bold yellow"),
    TimerState.IDLE: ("IDLE", "dim"),
}

COMPLETION_BANNER_SECONDS = 5


def make_progress_bar(remaining: float, total: Optional[float], width: int = 30) -> str:
    """Text progress bar of elapsed time."""
    if not total or total <= 0:
        return "[dim]" + "─" * width + "[/dim]"
    elapsed = min(1.0, max(0.0, 1 - remaining / total))
    filled = int(width * elapsed)
    return f"[cyan]{'█' * filled}[/cyan][dim]{'─' * (width - filled)}[/dim]"


def render_dashboard(model: CubeTimerModel, completion: Optional[Completion] = None) -> Panel:
    label, style = STATE_STYLES[model.display_state]
    face: Optional[CubeFace] = model.current_face

    text = Text()
    text.append(f"{model.current_mode.value} mode", style="bold white")
    text.append("  ·  ", style="dim")
    text.append(face.name if face else "No face", style="cyan" if face else "dim")
    text.append("\n\n")
    text.append(format_countdown(model.time_remaining), style=f"bold {style.split()[-1]}")
    text.append(f"  {label}\n", style=style)
    text.append_text(Text.from_markup(
        make_progress_bar(model.time_remaining, face.duration if face else None)
    ))

    if completion is not None:
        who = completion.face.name if completion.face else "Timer"
        if completion.reason == CompletionReason.FINISHED:
            text.append(f"\n\n{who} finished", style="bold magenta")
        else:
            text.append(f"\n\n{who} stopped elsewhere", style="yellow")

    return Panel(text, title="Pomodoro Cube", border_style="cyan")


async def run_dashboard(settings: Settings) -> None:
    store = SqliteTimerStore(settings.db_path, settings.namespace)
    scheduler = AsyncIOScheduler()
    model = CubeTimerModel(store, TimerController(store), scheduler=scheduler,
                           poll_interval=settings.poll_interval,
                           keep_polling_when_idle=True)

    banner: dict = {"completion": None, "until": 0.0}

    def _on_complete(completion: Completion) -> None:
        banner["completion"] = completion
        banner["until"] = time.monotonic() + COMPLETION_BANNER_SECONDS

    model.on_complete(_on_complete)
    await model.restore_state()
    scheduler.start()

    try:
        with Live(render_dashboard(model), console=console, refresh_per_second=10) as live:
            while True:
                completion = banner["completion"] if time.monotonic() < banner["until"] else None
                live.update(render_dashboard(model, completion))
                await asyncio.sleep(settings.poll_interval)
    finally:
        scheduler.shutdown(wait=False)
