#!/usr/bin/env python3
"""Pomodoro Cube CLI.

Background actions run straight against the shared store, the same way a
widget tap or a shell shortcut would, then ask the host to refresh its widget
and live display.

Usage:
    pomodoro-cube serve
    pomodoro-cube start --minutes 25
    pomodoro-cube pause
    pomodoro-cube status --json
    pomodoro-cube select "Deep Work"
    pomodoro-cube dashboard
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import click

from .companion import CompanionChannel
from .config import Settings
from .controller import TimerController, Transition
from .faces import CubeMode, faces_for, find_by_name, select_face
from .fanout import NotificationFanout
from .host_client import HostClient
from .intents import PAUSE, RESUME, START_FROM_IDLE, START_WITH_DURATION, STOP, run_intent
from .logs import configure_logging
from .store import SqliteTimerStore, init_store
from .timer import MAX_DURATION_MINUTES, format_countdown

MODE_CHOICE = click.Choice([mode.value for mode in CubeMode], case_sensitive=False)


def build_controller(settings: Settings) -> TimerController:
    """Controller for a short-lived process that does not own any surface."""
    host = HostClient(settings.host_url, timeout=settings.http_timeout)
    fanout = NotificationFanout(
        widgets=host,
        live_activities=host,
        companion=CompanionChannel(settings.companion_url, timeout=settings.http_timeout),
    )
    return TimerController(SqliteTimerStore(settings.db_path, settings.namespace), fanout)


def _mode(value: str) -> CubeMode:
    return next(mode for mode in CubeMode if mode.value.lower() == value.lower())


async def _run(settings: Settings, intent: str, **params) -> Transition:
    await init_store(settings.db_path)
    return await run_intent(intent, build_controller(settings), **params)


def _echo_transition(transition: Transition) -> None:
    record = transition.record
    line = f"{transition.kind.value}: {record.state.value}"
    if record.original_duration is not None:
        line += f" ({format_countdown(record.original_duration)})"
    if not transition.persisted:
        line += " [not saved]"
    click.echo(line)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """Pomodoro Cube - shared focus timer."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings.from_env()


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.pass_context
def serve(ctx, host):
    """Run the host service (widget, live display, foreground model)."""
    import uvicorn

    settings: Settings = ctx.obj["settings"]
    uvicorn.run("pomodoro_cube.server:app", host=host, port=settings.port)


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.pass_context
def companion(ctx, host):
    """Run the companion service."""
    import uvicorn

    from .watch import create_companion_app

    settings: Settings = ctx.obj["settings"]
    uvicorn.run(create_companion_app(), host=host, port=settings.companion_port)


@cli.command()
@click.option("--minutes", "-m", type=click.IntRange(1, MAX_DURATION_MINUTES), default=None,
              help="Duration in minutes (default: last configured duration)")
@click.pass_context
def start(ctx, minutes: Optional[int]):
    """Start a timer."""
    settings: Settings = ctx.obj["settings"]
    if minutes is None:
        transition = asyncio.run(_run(settings, START_FROM_IDLE))
    else:
        transition = asyncio.run(_run(settings, START_WITH_DURATION, minutes=minutes))
    _echo_transition(transition)


@cli.command()
@click.pass_context
def pause(ctx):
    """Pause the running timer."""
    _echo_transition(asyncio.run(_run(ctx.obj["settings"], PAUSE)))


@cli.command()
@click.pass_context
def resume(ctx):
    """Resume a paused timer."""
    _echo_transition(asyncio.run(_run(ctx.obj["settings"], RESUME)))


@cli.command()
@click.pass_context
def stop(ctx):
    """Stop the timer."""
    _echo_transition(asyncio.run(_run(ctx.obj["settings"], STOP)))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, as_json):
    """Show the timer as every surface derives it."""
    settings: Settings = ctx.obj["settings"]
    record, display = asyncio.run(build_controller(settings).snapshot())
    if as_json:
        click.echo(json.dumps({"record": record.to_dict(), "display": display.to_dict()}, indent=2))
        return
    click.echo(f"{display.display_state.value}: {format_countdown(display.remaining_seconds)}")
    click.echo(f"Last duration: {format_countdown(record.last_configured_duration)}")
    host = HostClient(settings.host_url, timeout=settings.http_timeout)
    click.echo(f"Host: {'running' if host.health() else 'not running'} ({settings.host_url})")


@cli.command()
@click.option("--mode", type=MODE_CHOICE, default=CubeMode.FOCUS.value, show_default=True)
def faces(mode):
    """List the faces of a mode."""
    for face in faces_for(_mode(mode)):
        click.echo(f"  {face.id}  {face.name:<12} {format_countdown(face.duration)}")


@cli.command()
@click.argument("name")
@click.option("--mode", type=MODE_CHOICE, default=CubeMode.FOCUS.value, show_default=True)
@click.pass_context
def select(ctx, name, mode):
    """Select a face by name: stops the current timer and starts the face."""
    settings: Settings = ctx.obj["settings"]
    face = find_by_name(faces_for(_mode(mode)), name)
    if face is None:
        raise click.ClickException(f"No face named '{name}' in {mode} mode")

    async def _select() -> Transition:
        await init_store(settings.db_path)
        return await select_face(build_controller(settings), face)

    _echo_transition(asyncio.run(_select()))


@cli.command()
@click.pass_context
def dashboard(ctx):
    """Live terminal view of the shared timer."""
    from .tui import run_dashboard

    try:
        asyncio.run(run_dashboard(ctx.obj["settings"]))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
