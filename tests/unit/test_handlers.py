"""
Unit tests for the handler registry.
"""

from datetime import datetime, timezone

import pytest

from jobworker.errors import HandlerRegistrationError, UnknownHandlerError
from jobworker.types.job import JobContext
from jobworker.worker.handlers import (
    Fail,
    HandlerRegistry,
    JobHandler,
    Noop,
    default_registry,
)


def make_job(job_class: str = "Noop", **overrides) -> JobContext:
    values = {
        "job_id": 1,
        "queue": "",
        "priority": 100,
        "run_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "job_class": job_class,
    }
    values.update(overrides)
    return JobContext(**values)


class TestHandlerRegistry:
    """Tests for HandlerRegistry."""

    def test_register_decorator(self):
        """Test registering a handler class with the decorator."""
        registry = HandlerRegistry()

        @registry.register("SendEmail")
        class SendEmail(JobHandler):
            def run(self, address):
                return address

        assert "SendEmail" in registry
        assert registry.resolve("SendEmail") is SendEmail

    def test_register_defaults_to_class_name(self):
        """Test the decorator falls back to the class name."""
        registry = HandlerRegistry()

        @registry.register()
        class Cleanup(JobHandler):
            def run(self):
                pass

        assert registry.names() == ["Cleanup"]

    def test_build_passes_job(self):
        """Test built handlers are constructed with the job."""
        registry = HandlerRegistry()
        registry.add("Noop", Noop)
        job = make_job()

        handler = registry.build(job)

        assert isinstance(handler, Noop)
        assert handler.job is job

    def test_plain_function_factory(self):
        """Test any callable returning a runnable object can be registered."""
        registry = HandlerRegistry()
        seen = []

        class Runner:
            def __init__(self, job):
                self.job = job

            def run(self, *args):
                seen.append(args)

        registry.add("Runner", lambda job: Runner(job))
        registry.build(make_job("Runner")).run(1, 2)

        assert seen == [(1, 2)]

    def test_unknown_handler(self):
        """Test resolving an unregistered class fails with a typed error."""
        registry = HandlerRegistry()

        with pytest.raises(UnknownHandlerError, match="No handler registered") as exc_info:
            registry.resolve("Missing")

        assert exc_info.value.job_class == "Missing"

    def test_duplicate_registration(self):
        """Test a name cannot be registered twice."""
        registry = HandlerRegistry()
        registry.add("Noop", Noop)

        with pytest.raises(HandlerRegistrationError):
            registry.add("Noop", Noop)

    @pytest.mark.parametrize("name", ["", None])
    def test_invalid_name(self, name):
        """Test empty names are rejected."""
        with pytest.raises(HandlerRegistrationError):
            HandlerRegistry().add(name, Noop)

    def test_non_callable_factory(self):
        """Test non-callable factories are rejected at registration."""
        with pytest.raises(HandlerRegistrationError):
            HandlerRegistry().add("Broken", "not a factory")


class TestBuiltinHandlers:
    """Tests for the built-in handlers."""

    def test_default_registry(self):
        """Test the built-ins are registered by default."""
        for name in ("Noop", "Echo", "Sleep", "Fail"):
            assert name in default_registry

    def test_noop(self):
        """Test Noop accepts any arguments."""
        Noop(make_job()).run(1, "two", {"three": 3})

    def test_sleep(self):
        """Test Sleep with a zero duration returns."""
        default_registry.build(make_job("Sleep")).run(0)

    def test_fail(self):
        """Test Fail raises with the attempt number."""
        with pytest.raises(RuntimeError, match="nope \\(attempt 3\\)"):
            Fail(make_job("Fail", error_count=2)).run("nope")
