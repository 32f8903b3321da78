"""
Job handler registry and built-in handlers.

A job's ``job_class`` names an entry in a HandlerRegistry. The entry is a
factory called with the job's JobContext; the object it returns is run with
the job's args. Handlers must be idempotent: a job may run more than once if
a worker dies between running it and deleting it.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from jobworker.errors import HandlerRegistrationError, UnknownHandlerError
from jobworker.types.job import JobContext

logger = logging.getLogger(__name__)


class JobHandler:
    """
    Base class for job handlers.

    Subclasses override run(). The job being worked is available as
    ``self.job``.
    """

    def __init__(self, job: JobContext):
        self.job = job

    def run(self, *args: Any) -> None:
        raise NotImplementedError


# Factory building a handler for one job
HandlerFactory = Callable[[JobContext], Any]


class HandlerRegistry:
    """
    Mapping of job class names to handler factories.

    Populated at startup. Registration is validated eagerly so a typo shows up
    when the worker boots, not when the first job arrives.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, HandlerFactory] = {}

    def add(self, name: str, factory: HandlerFactory) -> None:
        """
        Register a handler factory under a name.

        Raises:
            HandlerRegistrationError: If the name is empty or taken, or the
                factory is not callable.
        """
        if not isinstance(name, str) or not name:
            raise HandlerRegistrationError(f"Invalid handler name: {name!r}")
        if not callable(factory):
            raise HandlerRegistrationError(f"Handler for {name} is not callable")
        if name in self._handlers:
            raise HandlerRegistrationError(f"Handler already registered: {name}")

        self._handlers[name] = factory
        logger.debug(f"Registered handler for job class: {name}")

    def register(self, name: str | None = None) -> Callable[[HandlerFactory], HandlerFactory]:
        """
        Decorator to register a handler.

        Args:
            name: The job class name. Defaults to the decorated object's name.

        Example:
            @registry.register("SendEmail")
            class SendEmail(JobHandler):
                def run(self, address):
                    ...
        """
        def decorator(factory: HandlerFactory) -> HandlerFactory:
            self.add(name or factory.__name__, factory)
            return factory
        return decorator

    def resolve(self, job_class: str) -> HandlerFactory:
        """
        Look up the factory for a job class.

        Raises:
            UnknownHandlerError: If nothing is registered under that name.
        """
        try:
            return self._handlers[job_class]
        except KeyError:
            raise UnknownHandlerError(job_class) from None

    def build(self, job: JobContext) -> Any:
        """Construct the handler for a job."""
        return self.resolve(job.job_class)(job)

    def names(self) -> list[str]:
        """List all registered job classes."""
        return list(self._handlers)

    def __contains__(self, job_class: object) -> bool:
        return job_class in self._handlers


default_registry = HandlerRegistry()
register_handler = default_registry.register


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("Noop")
class Noop(JobHandler):
    """Does nothing. Useful for smoke tests."""

    def run(self, *args: Any) -> None:
        pass


@register_handler("Echo")
class Echo(JobHandler):
    """Logs its arguments."""

    def run(self, *args: Any) -> None:
        logger.info("Echo job", extra={"job_id": self.job.job_id, "echo": list(args)})


@register_handler("Sleep")
class Sleep(JobHandler):
    """
    Sleeps for a while.

    Args:
        seconds: How long to sleep. Defaults to 1.
    """

    def run(self, seconds: float = 1, *args: Any) -> None:
        time.sleep(seconds)


@register_handler("Fail")
class Fail(JobHandler):
    """Always raises. Useful for exercising retries."""

    def run(self, message: str = "Intentional failure", *args: Any) -> None:
        raise RuntimeError(f"{message} (attempt {self.job.error_count + 1})")
