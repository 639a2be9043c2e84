import threading
import unittest
from datetime import datetime, timedelta, timezone

from refreshguard.collectors import RefreshError, RefreshResult
from refreshguard.config import BackgroundRefreshSettings, RefreshGuardConfig
from refreshguard.refresh_log import BackgroundRefreshLogger
from refreshguard.services import (
    BackgroundRefreshScheduler,
    RefreshService,
    ServiceDependencies,
    build_runtime,
)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ImmediateRegistrar:
    def __init__(self) -> None:
        self.targets = []

    def schedule_background_refresh(self, target, completion):
        self.targets.append(target)
        completion(None)


class StubRefresher:
    def __init__(self, error=None) -> None:
        self.error = error
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return RefreshResult(status_code=200, fetched_at=datetime.now(timezone.utc), payload={})


class RefreshServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(datetime(2024, 5, 4, 10, 31, 0))
        self.config = RefreshGuardConfig(
            background_refresh=BackgroundRefreshSettings(background_task_schedule_rate=15)
        )
        self.registrar = ImmediateRegistrar()
        self.history = BackgroundRefreshLogger(clock=self.clock)
        self.scheduler = BackgroundRefreshScheduler(
            self.config.background_refresh,
            self.registrar,
            clock=self.clock,
            refresh_log=self.history,
        )

    def make_service(self, refresher=None):
        return RefreshService(
            self.config,
            ServiceDependencies(scheduler=self.scheduler, history=self.history, refresher=refresher),
        )

    def test_bootstrap_schedules_first_refresh(self):
        self.make_service().bootstrap()
        self.assertEqual(self.registrar.targets, [datetime(2024, 5, 4, 10, 45)])

    def test_wake_runs_refresh_and_reschedules(self):
        refresher = StubRefresher()
        service = self.make_service(refresher)
        service.bootstrap()

        self.clock.now = datetime(2024, 5, 4, 10, 45, 3)
        service.handle_wake(datetime(2024, 5, 4, 10, 45))

        self.assertEqual(refresher.calls, 1)
        self.assertEqual(self.registrar.targets[-1], datetime(2024, 5, 4, 11, 0))
        lines = self.history.lines()
        self.assertTrue(any("completed with status 200" in line for line in lines))
        self.assertTrue(lines[-1].endswith("Scheduled next background refresh at 11:00"))

    def test_failed_refresh_still_reschedules(self):
        service = self.make_service(StubRefresher(error=RefreshError("timeout")))
        self.clock.now = datetime(2024, 5, 4, 10, 45, 3)
        service.handle_wake(datetime(2024, 5, 4, 10, 45))

        self.assertEqual(self.registrar.targets, [datetime(2024, 5, 4, 11, 0)])
        self.assertTrue(any("failed: timeout" in line for line in self.history.lines()))

    def test_wake_without_refresher_only_reschedules(self):
        service = self.make_service()
        service.handle_wake(datetime(2024, 5, 4, 10, 30))
        self.assertEqual(len(self.registrar.targets), 1)
        self.assertIn("triggered", self.history.lines()[0])

    def test_run_forever_returns_when_stopped(self):
        stop_event = threading.Event()
        stop_event.set()
        self.make_service().run_forever(stop_event)
        self.assertEqual(len(self.registrar.targets), 1)


class BuildRuntimeTests(unittest.TestCase):
    def test_wake_drives_next_schedule(self):
        now = datetime.now().astimezone()
        clock = FakeClock(now.replace(minute=14, second=59, microsecond=980000))
        first_target = clock.now.replace(minute=15, second=0, microsecond=0)

        class AdvancingRefresher(StubRefresher):
            def fetch(self):
                clock.now = first_target + timedelta(seconds=2)
                return super().fetch()

        refresher = AdvancingRefresher()
        config = RefreshGuardConfig(
            background_refresh=BackgroundRefreshSettings(background_task_schedule_rate=15)
        )
        runtime = build_runtime(config, clock=clock, refresher=refresher)
        self.addCleanup(runtime.close)

        runtime.service.bootstrap()
        self.assertEqual(runtime.service.scheduler.state.last_scheduled_time, first_target)

        # the timer fires roughly 20ms later and the wake handler reschedules
        for _ in range(200):
            if refresher.calls:
                break
            threading.Event().wait(0.01)
        self.assertEqual(refresher.calls, 1)
        for _ in range(200):
            if runtime.registrar.pending_target is not None:
                break
            threading.Event().wait(0.01)
        self.assertEqual(runtime.registrar.pending_target, first_target + timedelta(minutes=15))

    def test_disabled_config_never_arms_a_wake(self):
        config = RefreshGuardConfig(
            background_refresh=BackgroundRefreshSettings(enable_background_tasks=False)
        )
        runtime = build_runtime(config)
        self.addCleanup(runtime.close)
        runtime.service.bootstrap()
        self.assertIsNone(runtime.registrar.pending_target)
        self.assertIsNone(runtime.service.scheduler.state.last_scheduled_time)


if __name__ == "__main__":
    unittest.main()
