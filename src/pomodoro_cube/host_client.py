"""Client used by processes that do not own the widget or live display.

CLI invocations and other short-lived processes mutate the shared store
directly, then ask the running host service to refresh the surfaces it owns.
If the host is not running the request fails and fan-out logs and moves on.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import requests

logger = logging.getLogger("pomodoro_cube.host_client")


class HostClient:
    def __init__(self, host_url: str, timeout: float = 2.0):
        self.host_url = host_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, payload: dict | None = None) -> dict:
        response = requests.post(f"{self.host_url}{path}", json=payload or {}, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def reload_all_timelines(self) -> None:
        await asyncio.to_thread(self._post, "/api/system/widgets/reload")

    async def start(self, end_date: datetime) -> dict:
        return await asyncio.to_thread(
            self._post, "/api/system/live-activities/start", {"end_date": end_date.isoformat()}
        )

    async def end_all(self) -> dict:
        return await asyncio.to_thread(self._post, "/api/system/live-activities/end")

    def health(self) -> bool:
        try:
            response = requests.get(f"{self.host_url}/health", timeout=self.timeout)
            return response.status_code == 200
        except requests.RequestException:
            return False
