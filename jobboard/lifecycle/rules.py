"""Pure lifecycle rules: when a posting is due for its next automatic transition.

Ages are elapsed durations, not calendar-day differences: a job posted at
23:59 is not a day old at 00:01. Nothing here is persisted; the predicates
are recomputed from (status, timestamp, now) whenever they are needed.
"""

from datetime import datetime, timedelta

from jobboard.core.clock import as_utc
from jobboard.core.config import LifecycleConfig
from jobboard.core.schemas import Job, JobStatus

DUMP_AFTER = timedelta(days=7)
INACTIVE_AFTER = timedelta(days=30)


def thresholds(config: LifecycleConfig | None = None) -> tuple[timedelta, timedelta]:
    """Return (dump_after, inactive_after) for a config, or the defaults."""
    if config is None:
        return DUMP_AFTER, INACTIVE_AFTER
    return timedelta(days=config.dump_after_days), timedelta(days=config.inactive_after_days)


def dump_cutoff(now: datetime, dump_after: timedelta = DUMP_AFTER) -> datetime:
    """Active jobs posted at or before this instant are due for dump."""
    return as_utc(now) - dump_after


def inactive_cutoff(now: datetime, inactive_after: timedelta = INACTIVE_AFTER) -> datetime:
    """Dump jobs dumped at or before this instant are due for inactive."""
    return as_utc(now) - inactive_after


def should_move_to_dump(job: Job, now: datetime, dump_after: timedelta = DUMP_AFTER) -> bool:
    if job.status != JobStatus.ACTIVE:
        return False
    return job.date_posted <= dump_cutoff(now, dump_after)


def should_move_to_inactive(
    job: Job,
    now: datetime,
    inactive_after: timedelta = INACTIVE_AFTER,
) -> bool:
    if job.status != JobStatus.DUMP or job.moved_to_dump_at is None:
        return False
    return job.moved_to_dump_at <= inactive_cutoff(now, inactive_after)
