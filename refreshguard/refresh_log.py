"""Log sink for background refresh events."""
from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, tzinfo
from typing import Callable, Deque, List, Optional

from refreshguard.config import LoggingConfig

BACKGROUND_LOGGER_NAME = "refreshguard.background"

Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now().astimezone()


def format_short_time(instant: datetime, tz: Optional[tzinfo] = None) -> str:
    """Return ``instant`` as a short local wall-clock string such as ``"10:45"``.

    Aware instants are converted to ``tz`` (the system local zone by default)
    first, so an instant carrying a stale offset still shows the current local
    time.  Naive instants are taken as local already.
    """

    if instant.tzinfo is not None:
        instant = instant.astimezone(tz)
    return instant.strftime("%H:%M")


def configure_logging(config: LoggingConfig) -> None:
    logging.basicConfig(level=config.level, format=config.format)


class BackgroundRefreshLogger:
    """Keep the most recent refresh log lines and forward them to :mod:`logging`.

    The history is what the ``run`` command prints once the service stops;
    older lines are dropped once ``history_size`` is reached.
    """

    def __init__(self, history_size: int = 100, clock: Optional[Clock] = None) -> None:
        self._clock = clock or local_now
        self._lines: Deque[str] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self._logger = logging.getLogger(BACKGROUND_LOGGER_NAME)

    def info(self, message: str) -> None:
        self._logger.info(message)
        stamp = self._clock().strftime("%H:%M:%S")
        with self._lock:
            self._lines.append(f"[{stamp}] {message}")

    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
