"""
Job repository for database operations.
Implements the store operations the worker relies on, on top of PostgreSQL
session-level advisory locks.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Connection, and_, delete, func, insert, select, tuple_, update

from jobworker.constants import DEFAULT_PRIORITY, DEFAULT_QUEUE
from jobworker.db.models import Job
from jobworker.types.job import JobContext

logger = logging.getLogger(__name__)

_JOB_COLUMNS = (
    Job.job_id,
    Job.queue,
    Job.priority,
    Job.run_at,
    Job.job_class,
    Job.args,
    Job.error_count,
    Job.last_error,
    Job.created_at,
)


def _to_context(row: Any) -> JobContext:
    values = dict(row._mapping)
    values["args"] = list(values["args"] or [])
    return JobContext(**values)


def _identity_filter(job: JobContext):
    return and_(
        Job.queue == job.queue,
        Job.priority == job.priority,
        Job.run_at == job.run_at,
        Job.job_id == job.job_id,
    )


class JobRepository:
    """
    Repository for job database operations.

    Bound to a single connection running in autocommit mode. Advisory locks
    taken here belong to that connection and must be released on it before
    it goes back to the pool.
    """

    def __init__(self, connection: Connection):
        """
        Initialize the repository with a database connection.

        Args:
            connection: A checked-out connection in autocommit mode.
        """
        self._conn = connection

    def candidates(
        self,
        queue: str,
        after: tuple[int, datetime, int] | None = None,
        limit: int = 10,
    ) -> Sequence[JobContext]:
        """
        List jobs eligible to run now, in dispatch order.

        Args:
            queue: The queue to select from.
            after: Sort key of the last candidate already seen, for paging.
            limit: Maximum number of candidates to return.

        Returns:
            Jobs ordered by priority, run_at, job_id.
        """
        stmt = (
            select(*_JOB_COLUMNS)
            .where(Job.queue == queue, Job.run_at <= func.now())
            .order_by(Job.priority, Job.run_at, Job.job_id)
            .limit(limit)
        )
        if after is not None:
            stmt = stmt.where(tuple_(Job.priority, Job.run_at, Job.job_id) > tuple_(*after))

        result = self._conn.execute(stmt)
        return [_to_context(row) for row in result]

    def try_advisory_lock(self, job_id: int) -> bool:
        """Try to take the advisory lock for a job without waiting."""
        return bool(self._conn.execute(select(func.pg_try_advisory_lock(job_id))).scalar_one())

    def advisory_lock(self, job_id: int) -> None:
        """Take the advisory lock for a job, waiting until it is free."""
        self._conn.execute(select(func.pg_advisory_lock(job_id)))

    def advisory_unlock(self, job_id: int) -> bool:
        """
        Release the advisory lock for a job.

        Returns:
            False if this connection did not hold the lock.
        """
        released = bool(self._conn.execute(select(func.pg_advisory_unlock(job_id))).scalar_one())
        if not released:
            logger.warning("Advisory lock was not held", extra={"job_id": job_id})
        return released

    def job_exists(self, job: JobContext) -> bool:
        """
        Check that the row the job was fetched from is still there unchanged.

        Advisory locks do not follow MVCC, so a job can be locked after a
        concurrent worker already deleted or rescheduled it.
        """
        stmt = select(Job.job_id).where(_identity_filter(job)).limit(1)
        return self._conn.execute(stmt).first() is not None

    def set_error(
        self,
        error_count: int,
        delay_seconds: float,
        last_error: str,
        job: JobContext,
    ) -> None:
        """
        Record a failure and push the job's run_at forward.

        Args:
            error_count: The new error count.
            delay_seconds: Backoff before the job becomes eligible again.
            last_error: Error message and traceback.
            job: The job as it was fetched.
        """
        stmt = (
            update(Job)
            .where(_identity_filter(job))
            .values(
                error_count=error_count,
                run_at=func.now() + timedelta(seconds=delay_seconds),
                last_error=last_error,
            )
        )
        result = self._conn.execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                "Job changed before its failure could be recorded",
                extra={"job_id": job.job_id},
            )

    def delete_job(self, job_id: int) -> None:
        """Delete a job after it ran successfully."""
        self._conn.execute(delete(Job).where(Job.job_id == job_id))

    def enqueue(
        self,
        job_class: str,
        args: Sequence[Any] = (),
        queue: str = DEFAULT_QUEUE,
        priority: int = DEFAULT_PRIORITY,
        run_at: datetime | None = None,
    ) -> JobContext:
        """
        Insert a new job.

        Args:
            job_class: Name of the registered handler.
            args: Positional arguments passed to the handler.
            queue: Queue name.
            priority: Lower runs first.
            run_at: Earliest execution time. Defaults to now.

        Returns:
            The created job.
        """
        values: dict[str, Any] = {
            "job_class": job_class,
            "args": list(args),
            "queue": queue,
            "priority": priority,
        }
        if run_at is not None:
            values["run_at"] = run_at

        row = self._conn.execute(insert(Job).values(**values).returning(*_JOB_COLUMNS)).one()
        job = _to_context(row)

        logger.info(
            "Enqueued job",
            extra={"job_id": job.job_id, "job_class": job_class, "queue": queue},
        )
        return job

    def invalidate(self) -> None:
        """Discard the underlying connection instead of returning it to the pool."""
        self._conn.invalidate()
