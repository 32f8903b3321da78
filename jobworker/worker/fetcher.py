"""
Selection of the next job to work.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from jobworker.constants import DEFAULT_FETCH_BATCH_SIZE, SPAN_FETCH_JOB
from jobworker.db.base import JobStore
from jobworker.observability.metrics import MetricsCollector
from jobworker.observability.tracing import get_tracer
from jobworker.types.job import JobContext
from jobworker.worker.locks import LockManager

logger = logging.getLogger(__name__)


class JobFetcher:
    """
    Finds and locks the most urgent eligible job in a queue.

    Candidates are jobs whose run_at has passed, ordered by priority, then
    run_at, then job_id. They are tried in that order and any job whose lock
    is held by another worker is skipped. Ordering plus skip-on-contention
    keeps concurrent workers roughly in priority order without any
    coordination beyond the locks.
    """

    def __init__(
        self,
        repo: JobStore,
        locks: LockManager,
        batch_size: int = DEFAULT_FETCH_BATCH_SIZE,
        metrics: MetricsCollector | None = None,
    ):
        self._repo = repo
        self._locks = locks
        self._batch_size = batch_size
        self._metrics = metrics

    def lock_next(self, queue: str) -> JobContext | None:
        """
        Lock the first available candidate.

        Args:
            queue: The queue to select from.

        Returns:
            The locked job, or None if every candidate is taken or none exist.
            The caller owns the lock.
        """
        with get_tracer().start_as_current_span(SPAN_FETCH_JOB) as span:
            span.set_attribute("queue", queue)
            skipped = 0
            after = None

            while True:
                batch = self._repo.candidates(queue, after=after, limit=self._batch_size)

                for job in batch:
                    if self._locks.try_lock(job.job_id):
                        span.set_attribute("job_id", job.job_id)
                        span.set_attribute("skipped", skipped)
                        return job
                    skipped += 1
                    logger.debug("Job locked by another worker", extra={"job_id": job.job_id})
                    if self._metrics is not None:
                        self._metrics.record_lock_contention(queue)

                if len(batch) < self._batch_size:
                    span.set_attribute("skipped", skipped)
                    return None
                after = batch[-1].sort_key

    @contextmanager
    def fetch_next(self, queue: str) -> Generator[JobContext | None]:
        """
        Yield the next locked job, or None, releasing its lock on exit.

        Args:
            queue: The queue to select from.
        """
        job = self.lock_next(queue)
        if job is None:
            yield None
            return

        with self._locks.holding(job.job_id):
            yield job
