"""Lifecycle engine: automatic and manual job status transitions.

State machine::

    active --(7d since date_posted)--> dump --(30d since moved_to_dump_at)--> inactive
      ^                                                                          |
      +----------------------------- reactivate (manual) -----------------------+

Manual transitions (reactivate, move to dump, move to inactive) skip the age
checks and always succeed for an existing job. Every operation goes to the
database; no job state is cached between calls.
"""

import logging
from datetime import datetime

from jobboard.core import db
from jobboard.core.clock import Clock, SystemClock, as_utc
from jobboard.core.config import LifecycleConfig
from jobboard.core.errors import DuplicateJobError, NotFoundError, StorageError
from jobboard.core.schemas import Job, JobFilters, JobPage, JobStatus, NewJob, TransitionResult
from jobboard.lifecycle.rules import dump_cutoff, inactive_cutoff, thresholds
from jobboard.lifecycle.search import build_filters, run_filter_chain

logger = logging.getLogger(__name__)


class LifecycleEngine:
    """Applies lifecycle transitions to jobs stored in SQLite.

    Usage::

        engine = LifecycleEngine(conn)
        result = engine.process_transitions()
        engine.reactivate_job(job_id)
    """

    def __init__(
        self,
        conn: db.Connection,
        clock: Clock | None = None,
        config: LifecycleConfig | None = None,
    ) -> None:
        self._conn = conn
        self._clock = clock or SystemClock()
        self._dump_after, self._inactive_after = thresholds(config)

    # -- automatic -----------------------------------------------------------

    def process_transitions(self, now: datetime | None = None) -> TransitionResult:
        """Run one pass: age active jobs into dump, then dump jobs into inactive.

        The dump step runs first and stamps ``moved_to_dump_at = now``, so a
        job it moves can never also qualify for the inactive step of the same
        pass. Running twice with the same ``now`` changes nothing the second time.

        Raises:
            StorageError: If either step fails. When the inactive step fails
                after the dump step committed, ``partial`` holds the dump count.
        """
        now = as_utc(now or self._clock.now())

        with db.storage_errors("Moving aged active jobs to dump"):
            moved_to_dump = db.bulk_move_to_dump(
                self._conn, dump_cutoff(now, self._dump_after), now,
            )

        try:
            with db.storage_errors("Moving expired dump jobs to inactive"):
                moved_to_inactive = db.bulk_move_to_inactive(
                    self._conn, inactive_cutoff(now, self._inactive_after), now,
                )
        except StorageError as e:
            e.partial = TransitionResult(moved_to_dump=moved_to_dump)
            raise

        result = TransitionResult(
            moved_to_dump=moved_to_dump,
            moved_to_inactive=moved_to_inactive,
        )
        logger.info(
            "Transition pass at %s: %d moved to dump, %d moved to inactive",
            now.isoformat(), result.moved_to_dump, result.moved_to_inactive,
        )
        return result

    # -- manual --------------------------------------------------------------

    def reactivate_job(self, job_id: int) -> Job:
        """Put a job back to active and restart its posting clock. Counters are kept."""
        return self._transition(job_id, JobStatus.ACTIVE)

    def move_to_dump(self, job_id: int) -> Job:
        return self._transition(job_id, JobStatus.DUMP)

    def move_to_inactive(self, job_id: int) -> Job:
        return self._transition(job_id, JobStatus.INACTIVE)

    def set_status(self, job_id: int, status: JobStatus | str) -> Job:
        """Dispatch an operator status change to the matching manual transition."""
        try:
            target = JobStatus(status)
        except ValueError:
            valid = ", ".join(s.value for s in JobStatus)
            msg = f"Invalid status '{status}'. Must be one of: {valid}"
            raise ValueError(msg) from None
        return self._transition(job_id, target)

    def _transition(self, job_id: int, status: JobStatus) -> Job:
        now = self._clock.now()
        with db.storage_errors(f"Moving job {job_id} to {status.value}"):
            updated = db.update_job_status(self._conn, job_id, status, now)
        if not updated:
            raise NotFoundError(job_id)
        logger.info("Job %s manually moved to %s", job_id, status.value)
        return self.get_job(job_id)

    # -- counters ------------------------------------------------------------

    def increment_view(self, job_id: int) -> Job:
        return self._increment(job_id, "view")

    def increment_click(self, job_id: int) -> Job:
        return self._increment(job_id, "click")

    def _increment(self, job_id: int, kind: str) -> Job:
        with db.storage_errors(f"Recording {kind} for job {job_id}"):
            updated = db.increment_job_counter(self._conn, job_id, kind, self._clock.now())
        if not updated:
            raise NotFoundError(job_id)
        return self.get_job(job_id)

    # -- reads and administration ---------------------------------------------

    def create_job(self, job: NewJob) -> Job:
        """Store a new posting as active, posted now.

        Raises:
            DuplicateJobError: If an active job already uses the same hiring link.
        """
        with self._conn.lock, db.storage_errors(f"Creating job {job.job_id}"):
            existing = db.find_active_by_hiring_link(self._conn, job.hiring_link)
            if existing is not None:
                raise DuplicateJobError(existing)
            row_id = db.insert_job(self._conn, job, self._clock.now())
        logger.info("Created job %s (%s at %s)", row_id, job.role, job.company_name)
        return self.get_job(row_id)

    def find_duplicate(self, hiring_link: str, exclude_id: int | None = None) -> Job | None:
        """Return the active job already using ``hiring_link``, if any."""
        with db.storage_errors("Checking for duplicate hiring link"):
            return db.find_active_by_hiring_link(self._conn, hiring_link, exclude_id)

    def search_jobs(
        self,
        filters: JobFilters | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> JobPage:
        """Page through the public listing: active, visible jobs matching ``filters``."""
        if page < 1 or limit < 1:
            msg = "page and limit must be >= 1"
            raise ValueError(msg)
        with db.storage_errors("Searching jobs"):
            jobs = db.list_public_jobs(self._conn)
        matched = run_filter_chain(jobs, build_filters(filters or JobFilters()))
        start = (page - 1) * limit
        return JobPage(jobs=matched[start:start + limit], page=page, limit=limit, total=len(matched))

    def get_job(self, job_id: int) -> Job:
        with db.storage_errors(f"Loading job {job_id}"):
            job = db.get_job(self._conn, job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job

    def get_job_by_external_id(self, external_id: str) -> Job:
        with db.storage_errors(f"Loading job {external_id}"):
            job = db.get_job_by_external_id(self._conn, external_id)
        if job is None:
            raise NotFoundError(external_id)
        return job

    def list_jobs(
        self,
        status: JobStatus | str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> JobPage:
        """Page through jobs, optionally of one status, most recently changed first."""
        if page < 1 or limit < 1:
            msg = "page and limit must be >= 1"
            raise ValueError(msg)
        target = JobStatus(status) if status is not None else None
        with db.storage_errors("Listing jobs"):
            jobs = db.list_jobs(self._conn, target, limit=limit, offset=(page - 1) * limit)
            total = db.count_jobs(self._conn, target)
        return JobPage(jobs=jobs, page=page, limit=limit, total=total)

    def status_counts(self) -> dict[JobStatus, int]:
        with db.storage_errors("Counting jobs by status"):
            return db.count_jobs_by_status(self._conn)

    def delete_job(self, job_id: int) -> None:
        """Remove a posting. Analytics rows that reference it are left in place."""
        with db.storage_errors(f"Deleting job {job_id}"):
            deleted = db.delete_job(self._conn, job_id)
        if not deleted:
            raise NotFoundError(job_id)
        logger.info("Deleted job %s", job_id)
