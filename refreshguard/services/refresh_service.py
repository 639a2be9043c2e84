"""High-level orchestration service."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from refreshguard.collectors import RefreshClient, RefreshError, RefreshResult
from refreshguard.config import RefreshGuardConfig
from refreshguard.refresh_log import BackgroundRefreshLogger, Clock, format_short_time
from refreshguard.services.scheduler import BackgroundRefreshScheduler
from refreshguard.services.wake import TimerWakeRegistrar

logger = logging.getLogger(__name__)


class Refresher(Protocol):
    def fetch(self) -> RefreshResult:
        ...


@dataclass(slots=True)
class ServiceDependencies:
    """Bundle of pluggable components used by :class:`RefreshService`."""

    scheduler: BackgroundRefreshScheduler
    history: BackgroundRefreshLogger
    refresher: Optional[Refresher] = None


class RefreshService:
    """Runs the refresh task on every wake-up and schedules the next one."""

    def __init__(self, config: RefreshGuardConfig, deps: ServiceDependencies) -> None:
        self._config = config
        self._deps = deps

    @property
    def scheduler(self) -> BackgroundRefreshScheduler:
        return self._deps.scheduler

    def bootstrap(self) -> None:
        """Schedule the first background refresh on launch."""

        logger.debug(
            "Bootstrapping background refresh every %d minutes",
            self._deps.scheduler.refresh_rate,
        )
        self._deps.scheduler.schedule()

    def handle_wake(self, target: datetime) -> None:
        """Run the refresh task for the wake-up at ``target`` and reschedule."""

        history = self._deps.history
        try:
            if self._deps.refresher is not None:
                result = self._deps.refresher.fetch()
                history.info(
                    f"Background refresh for {format_short_time(target)} "
                    f"completed with status {result.status_code}"
                )
            else:
                history.info(f"Background refresh for {format_short_time(target)} triggered")
        except RefreshError as exc:
            history.info(f"Background refresh for {format_short_time(target)} failed: {exc}")
        finally:
            self._deps.scheduler.schedule()

    def run_forever(self, stop_event: threading.Event) -> None:
        """Bootstrap and block until ``stop_event`` is set."""

        self.bootstrap()
        stop_event.wait()


@dataclass(slots=True)
class RefreshRuntime:
    """A wired service together with the resources it owns."""

    service: RefreshService
    registrar: TimerWakeRegistrar
    history: BackgroundRefreshLogger
    client: Optional[RefreshClient] = None

    def close(self) -> None:
        self.registrar.close()
        if self.client is not None:
            self.client.close()


def build_runtime(
    config: RefreshGuardConfig,
    *,
    clock: Optional[Clock] = None,
    refresher: Optional[Refresher] = None,
) -> RefreshRuntime:
    """Wire scheduler, wake registrar, refresh client and history from ``config``.

    When ``refresher`` is omitted an HTTP :class:`RefreshClient` is created for
    ``config.refresh`` (if configured).
    """

    history = BackgroundRefreshLogger(history_size=config.logging.history_size, clock=clock)
    client = None
    if refresher is None and config.refresh is not None:
        client = RefreshClient(config.refresh)
        refresher = client

    def on_wake(target: datetime) -> None:
        service.handle_wake(target)

    registrar = TimerWakeRegistrar(on_wake, clock=clock)
    scheduler = BackgroundRefreshScheduler(
        config.background_refresh,
        registrar,
        clock=clock,
        refresh_log=history,
    )
    service = RefreshService(
        config,
        ServiceDependencies(scheduler=scheduler, history=history, refresher=refresher),
    )
    return RefreshRuntime(service=service, registrar=registrar, history=history, client=client)
