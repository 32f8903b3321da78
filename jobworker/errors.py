"""
Exception types raised by the worker.
"""

from sqlalchemy.exc import SQLAlchemyError


class JobWorkerError(Exception):
    """Base class for all worker errors."""


class StorageError(JobWorkerError):
    """The job store could not be reached or rejected an operation."""


class UnknownHandlerError(JobWorkerError):
    """A job names a handler class that is not registered."""

    def __init__(self, job_class: str):
        super().__init__(f"No handler registered for job class: {job_class}")
        self.job_class = job_class


class HandlerRegistrationError(JobWorkerError):
    """A handler could not be registered."""


# Errors that make a worker step sleep and retry instead of crashing the loop
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    StorageError,
    SQLAlchemyError,
    ConnectionError,
)
