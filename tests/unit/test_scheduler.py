"""Tests for LifecycleScheduler: timing, single-flight, failure isolation."""

import asyncio
import logging
import threading
import time as time_mod
from datetime import datetime, time, timedelta, timezone

import pytest

from jobboard.core.clock import FrozenClock
from jobboard.core.config import SchedulerConfig
from jobboard.core.errors import StorageError
from jobboard.core.schemas import TransitionResult
from jobboard.lifecycle.scheduler import (
    LifecycleScheduler,
    next_run_at,
    seconds_until_next_run,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeRunner:
    """Records calls; optionally sleeps or fails."""

    def __init__(self, delay: float = 0.0, fail_times: int = 0) -> None:
        self.calls: list[datetime | None] = []
        self._delay = delay
        self._fail_times = fail_times
        self._lock = threading.Lock()

    def process_transitions(self, now: datetime | None = None) -> TransitionResult:
        with self._lock:
            self.calls.append(now)
            should_fail = len(self.calls) <= self._fail_times
        if self._delay:
            time_mod.sleep(self._delay)
        if should_fail:
            msg = "database is locked"
            raise StorageError(msg)
        return TransitionResult(moved_to_dump=2, moved_to_inactive=1)


# ---------------------------------------------------------------------------
# Timing helpers
# ---------------------------------------------------------------------------


class TestNextRunAt:
    def test_later_today(self) -> None:
        assert next_run_at(NOW, time(18, 30)) == datetime(2026, 3, 15, 18, 30, tzinfo=timezone.utc)

    def test_already_passed_rolls_to_tomorrow(self) -> None:
        assert next_run_at(NOW, time(0, 0)) == datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc)

    def test_exactly_now_is_tomorrow(self) -> None:
        assert next_run_at(NOW, time(12, 0)) == NOW + timedelta(days=1)

    def test_non_utc_now(self) -> None:
        ist = timezone(timedelta(hours=5, minutes=30))
        local = datetime(2026, 3, 16, 2, 0, tzinfo=ist)  # 2026-03-15 20:30 UTC
        assert next_run_at(local, time(0, 0)) == datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc)

    def test_seconds_until(self) -> None:
        assert seconds_until_next_run(NOW, time(13, 0)) == 3600.0
        just_before = datetime(2026, 3, 15, 23, 59, 59, tzinfo=timezone.utc)
        assert seconds_until_next_run(just_before, time(0, 0)) == 1.0


# ---------------------------------------------------------------------------
# run_once
# ---------------------------------------------------------------------------


class TestRunOnce:
    async def test_passes_clock_time(self) -> None:
        runner = FakeRunner()
        scheduler = LifecycleScheduler(runner, clock=FrozenClock(NOW))
        result = await scheduler.run_once()
        assert result == TransitionResult(moved_to_dump=2, moved_to_inactive=1)
        assert runner.calls == [NOW]
        assert scheduler.last_result == result
        assert scheduler.runs_completed == 1

    async def test_overlapping_tick_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        runner = FakeRunner(delay=0.1)
        scheduler = LifecycleScheduler(runner, clock=FrozenClock(NOW))
        with caplog.at_level(logging.WARNING):
            first, second = await asyncio.gather(scheduler.run_once(), scheduler.run_once())
        assert first is not None
        assert second is None
        assert len(runner.calls) == 1
        assert scheduler.ticks_skipped == 1
        assert "skipping" in caplog.text

    async def test_failure_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        runner = FakeRunner(fail_times=1)
        scheduler = LifecycleScheduler(runner, clock=FrozenClock(NOW))
        with caplog.at_level(logging.ERROR):
            assert await scheduler.run_once() is None
        assert scheduler.runs_failed == 1
        assert "will retry at next tick" in caplog.text

    async def test_next_run_after_failure_succeeds(self) -> None:
        runner = FakeRunner(fail_times=1)
        scheduler = LifecycleScheduler(runner, clock=FrozenClock(NOW))
        assert await scheduler.run_once() is None
        assert await scheduler.run_once() is not None
        assert not scheduler.running

    async def test_unexpected_exception_contained(self) -> None:
        class Broken:
            def process_transitions(self, now: datetime | None = None) -> TransitionResult:
                raise RuntimeError("bug")

        scheduler = LifecycleScheduler(Broken(), clock=FrozenClock(NOW))
        assert await scheduler.run_once() is None
        assert scheduler.runs_failed == 1


# ---------------------------------------------------------------------------
# tick / run_forever
# ---------------------------------------------------------------------------


class TestTick:
    async def test_tick_skipped_while_running(self) -> None:
        runner = FakeRunner(delay=0.1)
        scheduler = LifecycleScheduler(runner, clock=FrozenClock(NOW))
        task = asyncio.create_task(scheduler.run_once())
        await asyncio.sleep(0.02)
        assert scheduler.running
        scheduler.tick()
        await task
        assert scheduler.ticks_skipped == 1
        assert len(runner.calls) == 1


class TestRunForever:
    async def test_runs_on_startup_then_stops(self) -> None:
        runner = FakeRunner()
        scheduler = LifecycleScheduler(
            runner, SchedulerConfig(run_at=time(0, 0)), clock=FrozenClock(NOW),
        )
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert len(runner.calls) == 1
        assert scheduler.runs_completed == 1

    async def test_no_startup_run_when_disabled(self) -> None:
        runner = FakeRunner()
        scheduler = LifecycleScheduler(
            runner, SchedulerConfig(run_on_startup=False), clock=FrozenClock(NOW),
        )
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert runner.calls == []

    async def test_fires_at_scheduled_time(self) -> None:
        runner = FakeRunner()
        just_before_midnight = datetime(2026, 3, 15, 23, 59, 59, 950000, tzinfo=timezone.utc)
        scheduler = LifecycleScheduler(
            runner,
            SchedulerConfig(run_at=time(0, 0), run_on_startup=False),
            clock=FrozenClock(just_before_midnight),
        )
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.3)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert len(runner.calls) >= 1

    async def test_failed_startup_run_does_not_stop_loop(self) -> None:
        runner = FakeRunner(fail_times=1)
        scheduler = LifecycleScheduler(runner, SchedulerConfig(), clock=FrozenClock(NOW))
        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.run_forever(stop))
        await asyncio.sleep(0.05)
        assert not task.done()
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert scheduler.runs_failed == 1

    async def test_disabled_returns_immediately(self) -> None:
        runner = FakeRunner()
        scheduler = LifecycleScheduler(runner, SchedulerConfig(enabled=False))
        await asyncio.wait_for(scheduler.run_forever(), timeout=1.0)
        assert runner.calls == []
