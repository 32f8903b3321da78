"""
Observability module.
Contains job event logging, structured logging, metrics, and tracing setup.
"""

from jobworker.observability.events import (
    Deferred,
    Direct,
    Disabled,
    EventLogger,
)
from jobworker.observability.logging import get_event_sink, setup_logging
from jobworker.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from jobworker.observability.tracing import get_tracer, setup_tracing

__all__ = [
    "EventLogger",
    "Disabled",
    "Direct",
    "Deferred",
    "setup_logging",
    "get_event_sink",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
]
