"""
In-memory job store.

Mirrors the PostgreSQL repository closely enough to exercise the worker
without a database: session-scoped reentrant advisory locks, identity-matched
failure updates, and a switch that simulates a lost connection. Intended for
tests and examples.
"""

import itertools
import threading
from collections.abc import Callable, Generator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from jobworker.constants import DEFAULT_PRIORITY, DEFAULT_QUEUE
from jobworker.errors import StorageError
from jobworker.types.job import JobContext


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _detached(job: JobContext) -> JobContext:
    """Copy of a stored job whose args can be changed without touching the row."""
    return replace(job, args=list(job.args))


class InMemoryJobStore:
    """
    Shared state behind every in-memory repository.

    Each checkout opens a new session; advisory locks are owned by sessions
    and counted like PostgreSQL's, so a session must unlock as many times as
    it locked.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.connected = True
        self.leaked_locks: list[int] = []

        self._jobs: dict[int, JobContext] = {}
        self._locks: dict[int, tuple[int, int]] = {}  # job_id -> (session, depth)
        self._ids = itertools.count(1)
        self._sessions = itertools.count(1)
        self._cond = threading.Condition()

    # Connection switch

    def disconnect(self) -> None:
        """Make every subsequent operation fail as if the connection dropped."""
        self.connected = False

    def reconnect(self) -> None:
        self.connected = True

    # Inspection

    def get(self, job_id: int) -> JobContext | None:
        with self._cond:
            return self._jobs.get(job_id)

    def count(self) -> int:
        with self._cond:
            return len(self._jobs)

    def lock_holder(self, job_id: int) -> int | None:
        with self._cond:
            held = self._locks.get(job_id)
            return held[0] if held else None

    def delete(self, job_id: int) -> None:
        """Delete a row behind the workers' backs."""
        with self._cond:
            self._jobs.pop(job_id, None)

    def enqueue(self, job_class: str, args: Sequence[Any] = (), **kwargs: Any) -> JobContext:
        """Enqueue a job through a short-lived session."""
        with self.checkout() as repo:
            return repo.enqueue(job_class, args, **kwargs)

    @contextmanager
    def checkout(self) -> Generator["InMemoryRepository"]:
        """Open a session for the duration of the block."""
        repo = InMemoryRepository(self, next(self._sessions))
        try:
            yield repo
        finally:
            if not repo.invalidated:
                leaked = repo.held_locks()
                if leaked:
                    # A pooled connection would keep these locks forever
                    self.leaked_locks.extend(leaked)

    # Session operations, called through InMemoryRepository

    def _check(self) -> None:
        if not self.connected:
            raise StorageError("connection to job store lost")

    def _release_session(self, session: int) -> None:
        with self._cond:
            for job_id in [k for k, (owner, _) in self._locks.items() if owner == session]:
                del self._locks[job_id]
            self._cond.notify_all()


class InMemoryRepository:
    """Repository bound to one in-memory session."""

    def __init__(self, store: InMemoryJobStore, session: int):
        self._store = store
        self.session = session
        self.invalidated = False

    def held_locks(self) -> list[int]:
        with self._store._cond:
            return [k for k, (owner, _) in self._store._locks.items() if owner == self.session]

    def candidates(
        self,
        queue: str,
        after: tuple[int, datetime, int] | None = None,
        limit: int = 10,
    ) -> Sequence[JobContext]:
        store = self._store
        store._check()
        now = store.clock()
        with store._cond:
            eligible = sorted(
                (job for job in store._jobs.values() if job.queue == queue and job.run_at <= now),
                key=lambda job: job.sort_key,
            )
        if after is not None:
            eligible = [job for job in eligible if job.sort_key > after]
        return [_detached(job) for job in eligible[:limit]]

    def try_advisory_lock(self, job_id: int) -> bool:
        store = self._store
        store._check()
        with store._cond:
            owner, depth = store._locks.get(job_id, (self.session, 0))
            if owner != self.session:
                return False
            store._locks[job_id] = (self.session, depth + 1)
            return True

    def advisory_lock(self, job_id: int) -> None:
        store = self._store
        store._check()
        with store._cond:
            store._cond.wait_for(
                lambda: store._locks.get(job_id, (self.session, 0))[0] == self.session
            )
            _, depth = store._locks.get(job_id, (self.session, 0))
            store._locks[job_id] = (self.session, depth + 1)

    def advisory_unlock(self, job_id: int) -> bool:
        store = self._store
        store._check()
        with store._cond:
            held = store._locks.get(job_id)
            if held is None or held[0] != self.session:
                return False
            if held[1] > 1:
                store._locks[job_id] = (self.session, held[1] - 1)
            else:
                del store._locks[job_id]
                store._cond.notify_all()
            return True

    def job_exists(self, job: JobContext) -> bool:
        store = self._store
        store._check()
        with store._cond:
            current = store._jobs.get(job.job_id)
            return current is not None and current.identity == job.identity

    def set_error(
        self,
        error_count: int,
        delay_seconds: float,
        last_error: str,
        job: JobContext,
    ) -> None:
        store = self._store
        store._check()
        with store._cond:
            current = store._jobs.get(job.job_id)
            if current is None or current.identity != job.identity:
                return
            store._jobs[job.job_id] = replace(
                current,
                error_count=error_count,
                run_at=store.clock() + timedelta(seconds=delay_seconds),
                last_error=last_error,
            )

    def delete_job(self, job_id: int) -> None:
        store = self._store
        store._check()
        with store._cond:
            store._jobs.pop(job_id, None)

    def enqueue(
        self,
        job_class: str,
        args: Sequence[Any] = (),
        queue: str = DEFAULT_QUEUE,
        priority: int = DEFAULT_PRIORITY,
        run_at: datetime | None = None,
    ) -> JobContext:
        store = self._store
        store._check()
        now = store.clock()
        job = JobContext(
            job_id=next(store._ids),
            queue=queue,
            priority=priority,
            run_at=run_at or now,
            job_class=job_class,
            args=list(args),
            created_at=now,
        )
        with store._cond:
            store._jobs[job.job_id] = job
        return _detached(job)

    def invalidate(self) -> None:
        self.invalidated = True
        self._store._release_session(self.session)
