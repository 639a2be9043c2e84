"""Service orchestration helpers."""

from .refresh_service import RefreshRuntime, RefreshService, ServiceDependencies, build_runtime
from .scheduler import BackgroundRefreshScheduler, ScheduleState, next_schedule_time
from .wake import TimerWakeRegistrar, WakeRegistrationError

__all__ = [
    "BackgroundRefreshScheduler",
    "RefreshRuntime",
    "RefreshService",
    "ScheduleState",
    "ServiceDependencies",
    "TimerWakeRegistrar",
    "WakeRegistrationError",
    "build_runtime",
    "next_schedule_time",
]
