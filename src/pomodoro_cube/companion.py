"""Best-effort push of the timer summary to a paired companion device."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import requests

from .timer import TimerRecord, TimerState

logger = logging.getLogger("pomodoro_cube.companion")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_datetime(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value))


@dataclass(frozen=True)
class CompanionMessage:
    """Fire-and-forget context pushed on every mutation. Most recent wins."""

    state: TimerState
    end_date: Optional[datetime] = None
    original_duration: Optional[float] = None
    remaining: Optional[float] = None
    sent_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_record(cls, record: TimerRecord, sent_at: Optional[datetime] = None) -> "CompanionMessage":
        return cls(
            state=record.state,
            end_date=record.end_date,
            original_duration=record.original_duration,
            remaining=record.remaining_duration,
            sent_at=sent_at or _utcnow(),
        )

    def to_payload(self) -> dict:
        payload: dict = {"state": self.state.value, "sentAt": self.sent_at.isoformat()}
        if self.end_date is not None:
            payload["endDate"] = self.end_date.isoformat()
        if self.original_duration is not None:
            payload["originalDuration"] = self.original_duration
        if self.remaining is not None:
            payload["remaining"] = self.remaining
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "CompanionMessage":
        end_date = payload.get("endDate")
        sent_at = payload.get("sentAt")
        return cls(
            state=TimerState(payload.get("state", TimerState.IDLE.value)),
            end_date=_parse_datetime(end_date) if end_date else None,
            original_duration=payload.get("originalDuration"),
            remaining=payload.get("remaining"),
            sent_at=_parse_datetime(sent_at) if sent_at else _utcnow(),
        )

    def to_record(self) -> TimerRecord:
        """Rebuild a record so the receiver can run the shared derivation."""
        return TimerRecord(
            state=self.state,
            end_date=self.end_date,
            original_duration=self.original_duration,
            remaining_duration=self.remaining,
        )


class CompanionChannel:
    """Sends context to the companion's /context endpoint.

    No acknowledgement, no retry. Without a configured companion URL the device
    is treated as unpaired and every push is dropped.
    """

    def __init__(self, companion_url: Optional[str], timeout: float = 2.0):
        self.companion_url = companion_url.rstrip("/") if companion_url else None
        self.timeout = timeout

    @property
    def is_paired(self) -> bool:
        return self.companion_url is not None

    async def send_state(self, message: CompanionMessage) -> bool:
        if not self.is_paired:
            logger.debug(f"No companion paired, dropping {message.state.value} push")
            return False
        return await asyncio.to_thread(self._post, message.to_payload())

    def _post(self, payload: dict) -> bool:
        try:
            response = requests.post(
                f"{self.companion_url}/context", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Companion push dropped: {e}")
            return False
        return True
