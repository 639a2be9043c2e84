"""Background refresh scheduling.

The refresh moment is found by dividing the hour into periods of
``background_task_schedule_rate`` minutes, starting at minute 0.  With a rate
of 15 minutes the refresh runs at xx:00, xx:15, xx:30 and xx:45; calling
:meth:`BackgroundRefreshScheduler.schedule` at xx:18 asks for a wake-up at
xx:30.  The wake capability may deliver the wake-up late (or not at all);
that is outside the scheduler's control.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from refreshguard.refresh_log import (
    BackgroundRefreshLogger,
    Clock,
    format_short_time,
    local_now,
)

logger = logging.getLogger(__name__)

Completion = Callable[[Optional[BaseException]], None]


class RefreshSettings(Protocol):
    """Settings consumed by the scheduler."""

    enable_background_tasks: bool
    background_task_schedule_rate: int


class WakeRegistrar(Protocol):
    """Capability that wakes the process at a given instant.

    ``completion`` must be called exactly once, possibly from another thread,
    with ``None`` on success or the exception describing the failure.
    """

    def schedule_background_refresh(self, target: datetime, completion: Completion) -> None:
        ...


@dataclass(slots=True)
class ScheduleState:
    """The instant requested by the most recent :meth:`schedule` call.

    Several schedulers may share one state; :meth:`swap` is the only
    compare-and-set on it.
    """

    last_scheduled_time: Optional[datetime] = None
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def swap(self, target: datetime) -> bool:
        """Record ``target`` and return ``True`` if it differs from the previous one."""

        with self._lock:
            changed = not _same_instant(self.last_scheduled_time, target)
            self.last_scheduled_time = target
        return changed


def _same_instant(previous: Optional[datetime], target: datetime) -> bool:
    if previous is None:
        return False
    if previous.tzinfo is not None and target.tzinfo is not None:
        # same-tzinfo comparison ignores fold, compare in UTC instead
        return previous.astimezone(timezone.utc) == target.astimezone(timezone.utc)
    return previous == target


def next_schedule_time(now: datetime, refresh_rate: int) -> datetime:
    """Return the next period boundary strictly after ``now``.

    A ``now`` sitting exactly on a boundary advances to the following one, so
    repeated calls never re-select the current boundary.  For aware datetimes
    the hour carry is absolute time, so DST transitions neither skip nor
    repeat boundaries.
    """

    if refresh_rate <= 0:
        raise ValueError(f"refresh rate must be positive, got {refresh_rate}")

    next_minute = (now.minute // refresh_rate + 1) * refresh_rate
    schedule_time = now.replace(minute=next_minute % 60, second=0, microsecond=0)
    if next_minute >= 60:
        if schedule_time.tzinfo is None:
            schedule_time += timedelta(hours=1)
        else:
            schedule_time = (
                schedule_time.astimezone(timezone.utc) + timedelta(hours=1)
            ).astimezone(now.tzinfo)
    return schedule_time


class BackgroundRefreshScheduler:
    """Request the next aligned background refresh from a :class:`WakeRegistrar`.

    The schedule rate is read once at construction; the enable flag is read on
    every call so it can be switched off at runtime.  ``state`` is injected so
    that it can outlive the scheduler or be shared with tests.
    """

    def __init__(
        self,
        settings: RefreshSettings,
        registrar: WakeRegistrar,
        *,
        state: Optional[ScheduleState] = None,
        clock: Optional[Clock] = None,
        refresh_log: Optional[BackgroundRefreshLogger] = None,
    ) -> None:
        self._settings = settings
        self._refresh_rate = int(settings.background_task_schedule_rate)
        if self._refresh_rate <= 0:
            raise ValueError(f"refresh rate must be positive, got {self._refresh_rate}")
        self._registrar = registrar
        self._state = state if state is not None else ScheduleState()
        self._clock = clock or local_now
        self._refresh_log = refresh_log or BackgroundRefreshLogger()

    @property
    def refresh_rate(self) -> int:
        return self._refresh_rate

    @property
    def state(self) -> ScheduleState:
        return self._state

    def schedule(self) -> None:
        """Register the next background refresh, logging each new target once."""

        if not self._settings.enable_background_tasks:
            logger.info("Background tasks are disabled!")
            return

        schedule_time = next_schedule_time(self._clock(), self._refresh_rate)
        log_refresh_time = self._state.swap(schedule_time)

        completion = self._completion(schedule_time, log_refresh_time)
        try:
            self._registrar.schedule_background_refresh(schedule_time, completion)
        except Exception as exc:  # registrar failed before it could call back
            completion(exc)

    def _completion(self, schedule_time: datetime, log_refresh_time: bool) -> Completion:
        refresh_log = self._refresh_log
        done = threading.Lock()

        def on_registered(error: Optional[BaseException]) -> None:
            if not done.acquire(blocking=False):
                logger.warning(
                    "Ignoring repeated completion for %s: %s", schedule_time.isoformat(), error
                )
                return
            if log_refresh_time:
                refresh_log.info(
                    f"Scheduled next background refresh at {format_short_time(schedule_time)}"
                )
            if error is not None:
                refresh_log.info(
                    f"Error occurred while scheduling background refresh: {error}"
                )

        return on_registered
