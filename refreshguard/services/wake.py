"""Thread-timer implementation of the wake registration capability."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from refreshguard.refresh_log import Clock, local_now
from refreshguard.services.scheduler import Completion

logger = logging.getLogger(__name__)

WakeHandler = Callable[[datetime], None]


class WakeRegistrationError(RuntimeError):
    """Raised (via the completion callback) when a wake cannot be registered."""


class TimerWakeRegistrar:
    """Wake the process at the requested instant using :class:`threading.Timer`.

    Only one wake is pending at a time: a new request replaces the previous
    one.  The completion callback always runs on a separate worker thread.
    """

    def __init__(self, on_wake: WakeHandler, *, clock: Optional[Clock] = None) -> None:
        self._on_wake = on_wake
        self._clock = clock or local_now
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending_target: Optional[datetime] = None
        self._closed = False

    @property
    def pending_target(self) -> Optional[datetime]:
        with self._lock:
            return self._pending_target

    def schedule_background_refresh(self, target: datetime, completion: Completion) -> None:
        error: Optional[BaseException] = None
        with self._lock:
            if self._closed:
                error = WakeRegistrationError("wake registrar is closed")
            else:
                self._cancel_locked()
                delay = max(0.0, (target - self._clock()).total_seconds())
                timer = threading.Timer(delay, self._fire, args=(target,))
                timer.daemon = True
                self._timer = timer
                self._pending_target = target
                timer.start()
        self._notify(completion, error)

    def close(self) -> None:
        """Cancel the pending wake and refuse further requests."""

        with self._lock:
            self._closed = True
            self._cancel_locked()

    def __enter__(self) -> "TimerWakeRegistrar":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending_target = None

    def _fire(self, target: datetime) -> None:
        with self._lock:
            if self._pending_target != target:
                return
            self._timer = None
            self._pending_target = None
        try:
            self._on_wake(target)
        except Exception:
            logger.exception("Background refresh handler failed for %s", target.isoformat())

    @staticmethod
    def _notify(completion: Completion, error: Optional[BaseException]) -> None:
        worker = threading.Thread(target=completion, args=(error,), daemon=True)
        worker.start()
