"""Background-invocable actions, each mapping 1:1 to a control call.

These run unattended (shell, widget tap, CLI), so they never surface an error
for an invalid transition; only an unknown action name is an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from .controller import TimerController, Transition

START_FROM_IDLE = "StartFromIdle"
START_WITH_DURATION = "StartWithDuration"
PAUSE = "Pause"
RESUME = "Resume"
STOP = "Stop"

DEFAULT_INTENT_MINUTES = 25


class UnknownIntentError(KeyError):
    pass


class IntentParameterError(ValueError):
    pass


@dataclass(frozen=True)
class Intent:
    name: str
    title: str
    description: str
    perform: Callable[..., Awaitable["Transition"]]
    params: tuple[str, ...] = ()
    # Pause must reach the host process that owns the live display
    open_app_when_run: bool = False


async def _start_from_idle(controller: "TimerController") -> "Transition":
    return await controller.start_last()


async def _start_with_duration(controller: "TimerController",
                               minutes: int = DEFAULT_INTENT_MINUTES) -> "Transition":
    return await controller.start(float(minutes * 60))


async def _pause(controller: "TimerController") -> "Transition":
    return await controller.pause()


async def _resume(controller: "TimerController") -> "Transition":
    return await controller.resume()


async def _stop(controller: "TimerController") -> "Transition":
    return await controller.stop()


INTENTS: dict[str, Intent] = {
    START_FROM_IDLE: Intent(START_FROM_IDLE, "Start Timer",
                            "Starts the timer from idle.", _start_from_idle),
    START_WITH_DURATION: Intent(START_WITH_DURATION, "Start Pomodoro",
                                "Starts a pomodoro timer.", _start_with_duration,
                                params=("minutes",)),
    PAUSE: Intent(PAUSE, "Pause Timer", "Pauses the timer.", _pause,
                  open_app_when_run=True),
    RESUME: Intent(RESUME, "Resume Timer", "Resumes the timer.", _resume),
    STOP: Intent(STOP, "Stop Pomodoro", "Stops the timer.", _stop),
}


def get_intent(name: str) -> Intent:
    try:
        return INTENTS[name]
    except KeyError:
        raise UnknownIntentError(name) from None


async def run_intent(name: str, controller: "TimerController", **params: Any) -> "Transition":
    """Execute a named action against the controller."""
    intent = get_intent(name)
    unexpected = sorted(set(params) - set(intent.params))
    if unexpected:
        raise IntentParameterError(f"{name} does not take {', '.join(unexpected)}")
    return await intent.perform(controller, **params)
