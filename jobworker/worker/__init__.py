"""
Worker module.
Contains the worker loop and the components it drives.
"""

from jobworker.worker.executor import JobExecutor
from jobworker.worker.failures import FailureHandler, backoff_seconds
from jobworker.worker.fetcher import JobFetcher
from jobworker.worker.handlers import (
    HandlerRegistry,
    JobHandler,
    default_registry,
    register_handler,
)
from jobworker.worker.locks import LockManager
from jobworker.worker.main import Worker

__all__ = [
    "Worker",
    "JobExecutor",
    "JobFetcher",
    "FailureHandler",
    "backoff_seconds",
    "LockManager",
    "HandlerRegistry",
    "JobHandler",
    "default_registry",
    "register_handler",
]
