"""
Storage interface consumed by the worker.

The worker only talks to the store through a repository bound to one
checked-out connection. Advisory locks belong to that connection, so every
lock taken through a repository must be released through the same one.
"""

from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from jobworker.types.job import JobContext


class JobStore(Protocol):
    """Operations a worker needs from one store connection."""

    def candidates(
        self,
        queue: str,
        after: tuple[int, datetime, int] | None = None,
        limit: int = 10,
    ) -> Sequence[JobContext]: ...

    def try_advisory_lock(self, job_id: int) -> bool: ...

    def advisory_lock(self, job_id: int) -> None: ...

    def advisory_unlock(self, job_id: int) -> bool: ...

    def job_exists(self, job: JobContext) -> bool: ...

    def set_error(
        self,
        error_count: int,
        delay_seconds: float,
        last_error: str,
        job: JobContext,
    ) -> None: ...

    def delete_job(self, job_id: int) -> None: ...

    def enqueue(
        self,
        job_class: str,
        args: Sequence[Any] = (),
        queue: str = "",
        priority: int = 100,
        run_at: datetime | None = None,
    ) -> JobContext: ...

    def invalidate(self) -> None: ...


# Zero-argument callable handing out a repository for the duration of a block
Checkout = Callable[[], AbstractContextManager[JobStore]]
