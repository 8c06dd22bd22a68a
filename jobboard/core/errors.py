"""Error types raised by the lifecycle engine and analytics aggregator."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jobboard.core.schemas import Job, TransitionResult


class JobBoardError(Exception):
    """Base class for every error the core raises on purpose."""


class NotFoundError(JobBoardError, LookupError):
    """The targeted job does not exist."""

    def __init__(self, job_id: int | str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class StorageError(JobBoardError):
    """The persistence layer was unreachable or returned an error.

    ``partial`` is set when a multi-step operation applied some steps before
    failing (e.g. the dump step of a transition pass committed but the
    inactive step did not).
    """

    def __init__(self, message: str, partial: TransitionResult | None = None) -> None:
        super().__init__(message)
        self.partial = partial


class InvalidStateError(JobBoardError):
    """Reserved for manual-transition preconditions. Manual transitions are unconditional today."""


class DuplicateJobError(JobBoardError):
    """An active job already uses the same hiring link."""

    def __init__(self, existing: Job) -> None:
        super().__init__(
            f"A job with this hiring link already exists in active jobs: {existing.id} "
            f"({existing.role} at {existing.company_name})",
        )
        self.existing = existing
