"""
Structured job event logging.

Job events (job_worked, job_errored, ...) are the worker's observable
contract. They go to a pluggable sink: any object exposing one method per
level name (a stdlib ``logging.Logger`` or a structlog logger both qualify).
The sink is configured as one of three variants:

- ``Disabled``: events are dropped.
- ``Direct(sink)``: events go to ``sink``.
- ``Deferred(provider)``: ``provider()`` is called on every event to look up
  the sink, so events can be logged before the sink exists.

Errors raised by a formatter or a sink are not caught here.
"""

import os
import socket
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from jobworker.constants import DEFAULT_EVENT_LEVEL, LIB_NAME

# Formatter: event data -> message, or a falsy value to suppress the event
EventFormatter = Callable[[Mapping[str, Any]], str | None | bool]


@dataclass(frozen=True)
class Disabled:
    pass


@dataclass(frozen=True)
class Direct:
    sink: Any


@dataclass(frozen=True)
class Deferred:
    provider: Callable[[], Any]


LogTarget = Disabled | Direct | Deferred

_json_renderer = structlog.processors.JSONRenderer(default=str)


def default_record(event_data: Mapping[str, Any]) -> dict[str, Any]:
    """Build the default event record: process identity merged with the event."""
    return {
        "lib": LIB_NAME,
        "hostname": socket.gethostname(),
        "pid": os.getpid(),
        "thread": threading.get_ident(),
        **event_data,
    }


class EventLogger:
    """Emits job events to the configured sink."""

    def __init__(
        self,
        target: LogTarget = Disabled(),
        formatter: EventFormatter | None = None,
    ):
        self.target = target
        self.formatter = formatter

    @classmethod
    def from_logger(cls, logger: Any, formatter: EventFormatter | None = None) -> "EventLogger":
        """
        Classify a loosely specified logger.

        Args:
            logger: None, a sink object, or a zero-argument callable returning one.
            formatter: Optional event formatter.

        Returns:
            EventLogger: A logger with the matching target variant.
        """
        if logger is None:
            target: LogTarget = Disabled()
        elif callable(logger) and not hasattr(logger, "info"):
            target = Deferred(logger)
        else:
            target = Direct(logger)
        return cls(target, formatter)

    def resolve_sink(self) -> Any:
        """Return the sink events should go to right now, or None."""
        if isinstance(self.target, Direct):
            return self.target.sink
        if isinstance(self.target, Deferred):
            return self.target.provider()
        return None

    def log(self, **event_data: Any) -> None:
        """
        Emit one event.

        Args:
            **event_data: Event fields. ``level`` picks the sink method
                (default ``info``).
        """
        if self.formatter is not None:
            message = self.formatter(event_data)
            if not message:
                return
        else:
            record = default_record(event_data)
            message = _json_renderer(None, "", record)

        sink = self.resolve_sink()
        if sink is None:
            return

        level = event_data.get("level", DEFAULT_EVENT_LEVEL)
        getattr(sink, level)(message)
