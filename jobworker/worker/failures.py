"""
Failure recording and retry backoff.
"""

import logging
import traceback

from jobworker.db.base import JobStore
from jobworker.types.job import JobContext

logger = logging.getLogger(__name__)


def backoff_seconds(error_count: int) -> int:
    """Delay before retrying a job that has failed error_count times."""
    return error_count ** 4 + 3


def format_error(error: BaseException) -> str:
    """Error message followed by its traceback."""
    trace = "".join(traceback.format_tb(error.__traceback__))
    return f"{error}\n{trace}".rstrip("\n")


class FailureHandler:
    """
    Persists handler failures on the job row.

    There is no retry cap: a job keeps failing forward with growing backoff
    until it succeeds or someone deletes it.
    """

    def __init__(self, repo: JobStore):
        self._repo = repo

    def record_failure(self, job: JobContext, error: BaseException) -> int:
        """
        Bump the job's error count and reschedule it.

        The update is matched on the job's identifying fields as fetched, so
        a row that changed in the meantime is left alone.

        Args:
            job: The job as it was fetched.
            error: The exception the handler raised.

        Returns:
            Seconds until the job is eligible again.
        """
        count = job.error_count + 1
        delay = backoff_seconds(count)

        self._repo.set_error(count, delay, format_error(error), job)

        logger.info(
            "Job rescheduled after failure",
            extra={"job_id": job.job_id, "error_count": count, "retry_in": delay},
        )
        return delay
