"""Logging setup: named loggers, a recent-log buffer and crash logging."""

import logging
import sys
import traceback
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, Optional

from .config import CRASH_LOG_PATH

logger = logging.getLogger("pomodoro_cube")

# Circular buffer to store recent log entries (max 100)
log_buffer: Deque[dict] = deque(maxlen=100)


class LogBufferHandler(logging.Handler):
    """Logging handler that captures records into the circular buffer."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


buffer_handler = LogBufferHandler()
buffer_handler.setLevel(logging.DEBUG)
buffer_handler.setFormatter(logging.Formatter("%(message)s"))
logger.addHandler(buffer_handler)


def configure_logging(verbose: bool = False) -> None:
    """Configure console logging for a service or CLI process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(message)s",
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger("uvicorn").addHandler(buffer_handler)


def recent_logs(limit: int = 50) -> list[dict]:
    return list(log_buffer)[-limit:]


# ============ Crash Logging ============


_crash_log_path: Path = CRASH_LOG_PATH


def log_crash(exc_type, exc_value, exc_tb, context: str = "unhandled",
              path: Optional[Path] = None):
    """Write crash info to a persistent file for post-mortem debugging."""
    path = path or _crash_log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        tb_str = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        with open(path, "a") as f:
            f.write(f"\n{'=' * 60}\n")
            f.write(f"CRASH [{context}] at {timestamp}\n")
            f.write(f"{'=' * 60}\n")
            f.write(tb_str)
            f.write("\n")
        print(f"CRASH [{context}]: {exc_type.__name__}: {exc_value}", file=sys.stderr)
    except OSError:
        pass  # Don't crash while logging a crash


def _global_exception_handler(exc_type, exc_value, exc_tb):
    log_crash(exc_type, exc_value, exc_tb, context="sync")
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def asyncio_exception_handler(loop, context):
    """Handler for uncaught exceptions in asyncio tasks."""
    exception = context.get("exception")
    if exception:
        log_crash(type(exception), exception, exception.__traceback__, context="asyncio")
    else:
        logger.error(f"asyncio error: {context.get('message')}")
    loop.default_exception_handler(context)


def install_crash_handlers(path: Path = CRASH_LOG_PATH) -> None:
    global _crash_log_path
    _crash_log_path = path
    sys.excepthook = _global_exception_handler


def mark_crash_log(message: str, path: Optional[Path] = None) -> None:
    """Append a lifecycle marker (server start/stop) to the crash log."""
    path = path or _crash_log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(path, "a") as f:
            f.write(f"\n--- {message} at {timestamp} ---\n")
    except OSError:
        pass
