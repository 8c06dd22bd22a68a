"""Daily scheduler for the lifecycle transition pass.

Runs once at start-up to absorb any backlog from downtime, then once a day at
``scheduler.run_at`` (UTC). Single-flight: a tick that arrives while a pass is
still running is skipped. A failed pass is logged and the next tick retries.
"""

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Protocol

from jobboard.core.clock import Clock, SystemClock, as_utc
from jobboard.core.config import SchedulerConfig
from jobboard.core.schemas import TransitionResult

logger = logging.getLogger(__name__)


class TransitionRunner(Protocol):
    def process_transitions(self, now: datetime | None = None) -> TransitionResult: ...


def next_run_at(now: datetime, run_at: time) -> datetime:
    """Return the next occurrence of ``run_at`` (UTC) strictly after ``now``."""
    now = as_utc(now)
    candidate = datetime.combine(now.date(), run_at.replace(tzinfo=None), tzinfo=timezone.utc)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def seconds_until_next_run(now: datetime, run_at: time) -> float:
    return (next_run_at(now, run_at) - as_utc(now)).total_seconds()


class LifecycleScheduler:
    """Drives ``process_transitions`` on a daily timer.

    Usage::

        scheduler = LifecycleScheduler(engine, settings.scheduler)
        stop = asyncio.Event()
        await scheduler.run_forever(stop)
    """

    def __init__(
        self,
        runner: TransitionRunner,
        config: SchedulerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._runner = runner
        self._config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[TransitionResult | None]] = set()
        self.last_result: TransitionResult | None = None
        self.runs_completed = 0
        self.runs_failed = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> TransitionResult | None:
        """Run one transition pass unless one is already in progress.

        Returns the pass result, or None if the tick was skipped or failed.
        """
        if self._lock.locked():
            self.ticks_skipped += 1
            logger.warning("Transition pass still running - skipping this tick")
            return None

        async with self._lock:
            now = self._clock.now()
            try:
                result = await asyncio.to_thread(self._runner.process_transitions, now)
            except Exception:
                self.runs_failed += 1
                logger.exception("Transition pass failed; will retry at next tick")
                return None

        self.runs_completed += 1
        self.last_result = result
        logger.info(
            "Transition pass done: %d moved to dump, %d moved to inactive",
            result.moved_to_dump, result.moved_to_inactive,
        )
        return result

    def tick(self) -> None:
        """Start a pass in the background, or skip if one is running."""
        if self.running:
            self.ticks_skipped += 1
            logger.warning("Transition pass still running - skipping this tick")
            return
        task = asyncio.create_task(self.run_once())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run_forever(self, stop: asyncio.Event | None = None) -> None:
        """Tick at start-up and then daily until ``stop`` is set."""
        stop = stop or asyncio.Event()
        if not self._config.enabled:
            logger.info("Scheduler disabled by configuration")
            return

        if self._config.run_on_startup:
            self.tick()

        logger.info(
            "Lifecycle scheduler started - daily run at %s UTC",
            self._config.run_at.strftime("%H:%M"),
        )
        try:
            while not stop.is_set():
                delay = seconds_until_next_run(self._clock.now(), self._config.run_at)
                logger.debug("Next transition pass in %.0fs", delay)
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    self.tick()
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Lifecycle scheduler stopped")
