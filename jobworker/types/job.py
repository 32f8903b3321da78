"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from jobworker.constants import JOB_IDENTITY_FIELDS, JobOutcome


@dataclass(frozen=True)
class JobContext:
    """
    Snapshot of a job row as it was when the worker locked it.

    Handlers are constructed with this context. The identifying fields
    (queue, priority, run_at, job_id) are what every follow-up write is
    matched against, so a row rescheduled by someone else is never clobbered.
    """

    job_id: int
    queue: str
    priority: int
    run_at: datetime
    job_class: str
    args: list[Any] = field(default_factory=list)
    error_count: int = 0
    last_error: str | None = None
    created_at: datetime | None = None

    @property
    def identity(self) -> dict[str, Any]:
        """Identifying fields used to match this job's row."""
        return {name: getattr(self, name) for name in JOB_IDENTITY_FIELDS}

    @property
    def sort_key(self) -> tuple[int, datetime, int]:
        """Position of the job in the dispatch order."""
        return (self.priority, self.run_at, self.job_id)


class JobResult(BaseModel):
    """
    Result of executing a locked job.
    Returned by the executor to the worker loop.
    """

    outcome: JobOutcome
    error: str | None = None
    duration_ms: float | None = None
