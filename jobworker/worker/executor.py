"""
Execution of a locked job.
"""

import logging
import time

from jobworker.constants import (
    EVENT_JOB_ERRORED,
    EVENT_JOB_RACE_CONDITION,
    EVENT_JOB_WORKED,
    SPAN_EXECUTE_JOB,
    JobOutcome,
)
from jobworker.db.base import JobStore
from jobworker.observability.events import EventLogger
from jobworker.observability.metrics import MetricsCollector
from jobworker.observability.tracing import get_tracer
from jobworker.types.job import JobContext, JobResult
from jobworker.worker.failures import FailureHandler
from jobworker.worker.handlers import HandlerRegistry

logger = logging.getLogger(__name__)


class JobExecutor:
    """
    Runs one job while its advisory lock is held.

    Handles the full lifecycle of a single attempt:
    1. Re-check that the row still exists (the lock does not prove it)
    2. Resolve and run the handler
    3. Delete the row on success, or record the failure for retry

    Storage errors are not caught here; the worker loop treats them as
    transient.
    """

    def __init__(
        self,
        repo: JobStore,
        registry: HandlerRegistry,
        events: EventLogger,
        metrics: MetricsCollector,
    ):
        self._repo = repo
        self._registry = registry
        self._events = events
        self._metrics = metrics
        self._failures = FailureHandler(repo)

    def execute(self, job: JobContext) -> JobResult:
        """
        Execute a locked job.

        Args:
            job: The job as fetched. Its lock must be held by the caller.

        Returns:
            JobResult describing what happened to the job.
        """
        if not self._repo.job_exists(job):
            # Worked by someone else between our select and our lock
            self._events.log(
                level="debug",
                event=EVENT_JOB_RACE_CONDITION,
                job_id=job.job_id,
                queue=job.queue,
            )
            return JobResult(outcome=JobOutcome.ALREADY_WORKED)

        start_time = time.monotonic()

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.job_id)
            span.set_attribute("job_class", job.job_class)
            span.set_attribute("queue", job.queue)
            span.set_attribute("error_count", job.error_count)

            try:
                handler = self._registry.build(job)
                handler.run(*job.args)
            except Exception as error:
                duration = time.monotonic() - start_time
                return self._handle_failure(job, error, duration)

        self._repo.delete_job(job.job_id)
        duration = time.monotonic() - start_time

        self._metrics.record_job_worked(job.queue, job.job_class, duration)
        self._events.log(
            event=EVENT_JOB_WORKED,
            job_id=job.job_id,
            job_class=job.job_class,
            queue=job.queue,
            priority=job.priority,
            args=job.args,
            elapsed=round(duration, 6),
        )
        return JobResult(outcome=JobOutcome.SUCCEEDED, duration_ms=duration * 1000)

    def _handle_failure(self, job: JobContext, error: Exception, duration: float) -> JobResult:
        logger.warning(
            "Job handler raised",
            extra={"job_id": job.job_id, "job_class": job.job_class, "error": str(error)},
        )

        retry_in = self._failures.record_failure(job, error)

        self._metrics.record_job_errored(job.queue, job.job_class, duration)
        self._events.log(
            level="error",
            event=EVENT_JOB_ERRORED,
            job_id=job.job_id,
            job_class=job.job_class,
            queue=job.queue,
            error=str(error),
            error_class=type(error).__name__,
            error_count=job.error_count + 1,
            retry_in=retry_in,
        )
        return JobResult(outcome=JobOutcome.FAILED, error=str(error), duration_ms=duration * 1000)
