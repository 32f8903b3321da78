"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class StepResult(StrEnum):
    """
    Outcome of a single worker step.

    - NO_JOB: nothing eligible could be locked, the worker sleeps
    - WORKED: a job was processed (succeeded, failed and recorded, or lost a race)
    - TRANSIENT_ERROR: the store was unreachable, the worker sleeps
    """

    NO_JOB = "no_job"
    WORKED = "worked"
    TRANSIENT_ERROR = "transient_error"


class JobOutcome(StrEnum):
    """Outcome of executing one locked job."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ALREADY_WORKED = "already_worked"


# Library identifier stamped on every event record
LIB_NAME = "jobworker"

# Default values
DEFAULT_QUEUE = ""
DEFAULT_PRIORITY = 100
DEFAULT_WAKE_INTERVAL = 5.0
DEFAULT_FETCH_BATCH_SIZE = 10
DEFAULT_EVENT_LEVEL = "info"

# Fields that identify a job row independently of its mutable state
JOB_IDENTITY_FIELDS = ("queue", "priority", "run_at", "job_id")

# Event names
EVENT_JOB_UNAVAILABLE = "job_unavailable"
EVENT_JOB_WORKED = "job_worked"
EVENT_JOB_ERRORED = "job_errored"
EVENT_JOB_RACE_CONDITION = "job_race_condition"

# Logger that receives encoded job events
EVENT_LOGGER_NAME = "jobworker.events"

# Metrics names
METRIC_WORKER_STEPS = "worker_steps_total"
METRIC_JOBS_WORKED = "jobs_worked_total"
METRIC_JOBS_ERRORED = "jobs_errored_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_LOCK_CONTENTION = "job_lock_contention_total"

# Trace span names
SPAN_FETCH_JOB = "fetch_job"
SPAN_EXECUTE_JOB = "execute_job"
