"""
Worker process for executing jobs.

The worker claims one job at a time from the queue, executes it, and records
failures for retry. It keeps working back to back while jobs are available
and sleeps for the wake interval when the queue is empty or the database is
unreachable.
"""

import logging
import signal
import threading

from jobworker.config import get_settings
from jobworker.constants import EVENT_JOB_UNAVAILABLE, JobOutcome, StepResult
from jobworker.db import close_db, get_engine, init_db, make_checkout
from jobworker.db.base import Checkout, JobStore
from jobworker.errors import TRANSIENT_ERRORS
from jobworker.observability.events import EventLogger
from jobworker.observability.logging import (
    bind_context,
    clear_context,
    get_event_sink,
    setup_logging,
)
from jobworker.observability.metrics import MetricsCollector, get_metrics, setup_metrics
from jobworker.observability.tracing import instrument_sqlalchemy, setup_tracing
from jobworker.worker.executor import JobExecutor
from jobworker.worker.fetcher import JobFetcher
from jobworker.worker.handlers import HandlerRegistry, default_registry
from jobworker.worker.locks import LockManager

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that fetches and executes one job per step.

    Features:
    - Session-level advisory locks per job, released before the connection
      goes back to the pool
    - Existence re-check after locking, since advisory locks ignore MVCC
    - Failures rescheduled with backoff, storage errors absorbed by the loop
    - Cooperative shutdown that never interrupts a running job
    """

    def __init__(
        self,
        queue: str | None = None,
        wake_interval: float | None = None,
        *,
        checkout: Checkout | None = None,
        registry: HandlerRegistry | None = None,
        event_logger: EventLogger | None = None,
        metrics: MetricsCollector | None = None,
        fetch_batch_size: int | None = None,
        name: str | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: Queue to work. Defaults to the unnamed queue.
            wake_interval: Seconds to sleep when no job could be worked.
            checkout: Callable handing out a store connection per step.
                Defaults to the configured PostgreSQL database.
            registry: Handlers available to this worker.
            event_logger: Destination for job events. Defaults to the
                ``jobworker.events`` logger.
            metrics: Metrics collector.
            fetch_batch_size: Candidates read per query while fetching.
            name: Thread name used by start().
        """
        settings = get_settings()

        self.queue = settings.worker_queue if queue is None else queue
        self.wake_interval = (
            settings.worker_wake_interval_seconds if wake_interval is None else wake_interval
        )
        if self.wake_interval <= 0:
            raise ValueError("wake_interval must be positive")
        self.fetch_batch_size = fetch_batch_size or settings.worker_fetch_batch_size
        self.name = name or f"jobworker-{self.queue or 'default'}"

        self._checkout = checkout or make_checkout(get_engine())
        self._registry = registry or default_registry
        self._events = event_logger or EventLogger.from_logger(get_event_sink())
        self._metrics = metrics or get_metrics()

        self._stopping = threading.Event()
        self._wakeup = threading.Event()
        self._stopped = threading.Event()
        self._stopped.set()
        self._sleeping = False
        self._thread: threading.Thread | None = None

    @property
    def is_sleeping(self) -> bool:
        """True while the worker waits out its wake interval."""
        return self._sleeping

    @property
    def is_running(self) -> bool:
        return not self._stopped.is_set()

    def step(self) -> StepResult:
        """
        Fetch and execute at most one job.

        Never raises for storage failures; those come back as
        TRANSIENT_ERROR.

        Returns:
            StepResult for this step.
        """
        try:
            with self._checkout() as repo:
                locks = LockManager(repo)
                try:
                    result = self._work(repo, locks)
                finally:
                    if locks.held:
                        self._release_leftover_locks(repo, locks)
        except TRANSIENT_ERRORS as e:
            logger.warning(
                f"Job store error in worker step: {e}",
                extra={"worker": self.name, "queue": self.queue},
            )
            result = StepResult.TRANSIENT_ERROR

        self._metrics.record_step(result)
        return result

    def _release_leftover_locks(self, repo: JobStore, locks: LockManager) -> None:
        """Retry releases that failed; discard the connection if they fail again."""
        job_ids = locks.held
        try:
            locks.release_all()
            return
        except TRANSIENT_ERRORS as e:
            # The connection still holds locks; it must not be reused
            logger.warning(
                f"Discarding connection with advisory locks held: {e}",
                extra={"job_ids": job_ids},
            )
        repo.invalidate()

    def _work(self, repo: JobStore, locks: LockManager) -> StepResult:
        fetcher = JobFetcher(repo, locks, self.fetch_batch_size, self._metrics)

        with fetcher.fetch_next(self.queue) as job:
            if job is None:
                self._events.log(event=EVENT_JOB_UNAVAILABLE, queue=self.queue)
                return StepResult.NO_JOB

            executor = JobExecutor(repo, self._registry, self._events, self._metrics)
            outcome = executor.execute(job).outcome

        if outcome in (JobOutcome.SUCCEEDED, JobOutcome.FAILED, JobOutcome.ALREADY_WORKED):
            return StepResult.WORKED
        raise AssertionError(f"Unhandled job outcome: {outcome}")

    def run(self) -> None:
        """
        Work jobs until stop() is called.

        Blocks the calling thread. The stop flag is checked between steps,
        so a job in progress always finishes. A worker stopped earlier can be
        run again.
        """
        self._reset()
        self._loop()

    def _reset(self) -> None:
        self._stopping.clear()
        self._wakeup.clear()
        self._stopped.clear()

    def _loop(self) -> None:
        bind_context(worker=self.name, queue=self.queue)
        logger.info(
            "Worker starting",
            extra={"worker": self.name, "queue": self.queue, "wake_interval": self.wake_interval},
        )

        try:
            while True:
                result = self.step()

                # Keep going straight away while there is work to drain
                if result is not StepResult.WORKED and not self._stopping.is_set():
                    self._sleep()

                if self._stopping.is_set():
                    break
        finally:
            self._stopped.set()
            logger.info("Worker stopped", extra={"worker": self.name})
            clear_context()

    def _sleep(self) -> None:
        self._sleeping = True
        try:
            self._wakeup.wait(self.wake_interval)
        finally:
            self._sleeping = False
            self._wakeup.clear()

    def start(self) -> threading.Thread:
        """
        Run the worker loop in a background thread.

        Returns:
            The worker thread.
        """
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError(f"Worker {self.name} is already running")

        # Reset here, not in the thread, so a stop() right after start() holds
        self._reset()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Ask the worker to stop after its current step."""
        logger.info("Worker stopping", extra={"worker": self.name})
        self._stopping.set()
        self._wakeup.set()

    def wake(self) -> None:
        """Cut the current sleep short so the worker polls right away."""
        self._wakeup.set()

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait until the loop has seen the stop flag and exited.

        Args:
            timeout: Seconds to wait. Waits indefinitely if None.

        Returns:
            True if the worker has stopped.
        """
        return self._stopped.wait(timeout)


def run() -> None:
    """Run a worker in the foreground until SIGTERM or SIGINT."""
    setup_logging()
    settings = get_settings()

    if settings.otel_enabled:
        setup_tracing()
    metrics = setup_metrics(settings.prometheus_port)

    engine = init_db()
    if settings.otel_enabled:
        instrument_sqlalchemy(engine)

    worker = Worker(checkout=make_checkout(engine), metrics=metrics)

    # Handle shutdown signals
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda signum, frame: worker.stop())

    try:
        worker.run()
    finally:
        close_db()


if __name__ == "__main__":
    run()
