"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from jobworker.constants import (
    METRIC_JOB_DURATION,
    METRIC_JOBS_ERRORED,
    METRIC_JOBS_WORKED,
    METRIC_LOCK_CONTENTION,
    METRIC_WORKER_STEPS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the worker.

    Collects metrics for:
    - Worker step outcomes
    - Job successes and failures
    - Job execution duration
    - Advisory lock contention while fetching
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.worker_steps = Counter(
            METRIC_WORKER_STEPS,
            "Total number of worker steps by result",
            ["result"],
            registry=self._registry,
        )

        self.jobs_worked = Counter(
            METRIC_JOBS_WORKED,
            "Total number of jobs run successfully",
            ["queue", "job_class"],
            registry=self._registry,
        )

        self.jobs_errored = Counter(
            METRIC_JOBS_ERRORED,
            "Total number of job failures recorded",
            ["queue", "job_class"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["queue", "job_class"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
            registry=self._registry,
        )

        self.lock_contention = Counter(
            METRIC_LOCK_CONTENTION,
            "Candidates skipped because another worker held their lock",
            ["queue"],
            registry=self._registry,
        )

    def record_step(self, result: str) -> None:
        """Record the result of one worker step."""
        self.worker_steps.labels(result=result).inc()

    def record_job_worked(self, queue: str, job_class: str, duration_seconds: float) -> None:
        """Record a successful job run."""
        self.jobs_worked.labels(queue=queue, job_class=job_class).inc()
        self.job_duration.labels(queue=queue, job_class=job_class).observe(duration_seconds)

    def record_job_errored(self, queue: str, job_class: str, duration_seconds: float) -> None:
        """Record a job failure."""
        self.jobs_errored.labels(queue=queue, job_class=job_class).inc()
        self.job_duration.labels(queue=queue, job_class=job_class).observe(duration_seconds)

    def record_lock_contention(self, queue: str) -> None:
        """Record a candidate skipped because it was locked elsewhere."""
        self.lock_contention.labels(queue=queue).inc()


def setup_metrics(port: int = 0) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: Serve metrics over HTTP on this port when non-zero.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port:
        start_http_server(port)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
