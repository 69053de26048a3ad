"""Configuration management for the Pomodoro Cube services."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the working directory (POMODORO_DB, POMODORO_COMPANION_URL, etc.)
load_dotenv(Path.cwd() / ".env")

DEFAULT_NAMESPACE = "group.com.swayam.pomodoro"
DEFAULT_DB_PATH = Path.home() / ".pomodoro-cube" / "shared.db"
CRASH_LOG_PATH = Path.home() / ".pomodoro-cube" / "crash.log"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Settings shared by the host service, companion service and CLI."""

    db_path: Path = DEFAULT_DB_PATH
    namespace: str = DEFAULT_NAMESPACE
    host_url: str = "http://localhost:7788"
    port: int = 7788
    companion_url: Optional[str] = None  # None = no paired companion
    companion_port: int = 7789
    live_activities_enabled: bool = True
    poll_interval: float = 0.1  # ~10 Hz foreground refresh
    http_timeout: float = 2.0
    crash_log_path: Path = CRASH_LOG_PATH

    @classmethod
    def from_env(cls) -> "Settings":
        port = int(os.environ.get("POMODORO_PORT", 7788))
        return cls(
            db_path=Path(os.environ.get("POMODORO_DB", str(DEFAULT_DB_PATH))).expanduser(),
            namespace=os.environ.get("POMODORO_NAMESPACE", DEFAULT_NAMESPACE),
            host_url=os.environ.get("POMODORO_HOST_URL", f"http://localhost:{port}"),
            port=port,
            companion_url=os.environ.get("POMODORO_COMPANION_URL") or None,
            companion_port=int(os.environ.get("POMODORO_COMPANION_PORT", 7789)),
            live_activities_enabled=_env_bool("POMODORO_LIVE_ACTIVITIES", True),
            poll_interval=float(os.environ.get("POMODORO_POLL_INTERVAL", 0.1)),
            http_timeout=float(os.environ.get("POMODORO_HTTP_TIMEOUT", 2.0)),
            crash_log_path=Path(os.environ.get("POMODORO_CRASH_LOG", str(CRASH_LOG_PATH))).expanduser(),
        )
