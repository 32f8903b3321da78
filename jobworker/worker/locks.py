"""
Advisory lock management for one store connection.
"""

import logging
from collections import Counter
from collections.abc import Generator
from contextlib import contextmanager

from jobworker.db.base import JobStore

logger = logging.getLogger(__name__)


class LockManager:
    """
    Tracks the advisory locks taken on one checked-out connection.

    Locks are keyed by job_id and live on the connection, not in a
    transaction: they are invisible to MVCC, so a lock can be taken on a row
    that a concurrent transaction already deleted. Whoever holds a lock must
    re-check the row before acting on it.
    """

    def __init__(self, repo: JobStore):
        self._repo = repo
        self._held: Counter[int] = Counter()

    @property
    def held(self) -> list[int]:
        """Job ids currently locked through this manager."""
        return list(self._held)

    def try_lock(self, job_id: int) -> bool:
        """Take the lock if nobody else holds it."""
        if not self._repo.try_advisory_lock(job_id):
            return False
        self._held[job_id] += 1
        return True

    def unlock(self, job_id: int) -> None:
        """Release one hold on the lock."""
        self._repo.advisory_unlock(job_id)
        self._held[job_id] -= 1
        if self._held[job_id] <= 0:
            del self._held[job_id]

    @contextmanager
    def holding(self, job_id: int) -> Generator[int]:
        """Release an already acquired lock when the block exits."""
        try:
            yield job_id
        finally:
            self.unlock(job_id)

    @contextmanager
    def with_lock(self, job_id: int) -> Generator[int]:
        """
        Run a block under the lock for job_id, waiting for it if needed.

        The lock is released on every exit path: normal completion, an
        exception, or an early return from the block.
        """
        self._repo.advisory_lock(job_id)
        self._held[job_id] += 1
        with self.holding(job_id):
            yield job_id

    def release_all(self) -> None:
        """Release every lock this manager still holds."""
        for job_id, depth in list(self._held.items()):
            for _ in range(depth):
                self.unlock(job_id)
