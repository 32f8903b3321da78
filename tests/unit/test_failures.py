"""
Unit tests for failure recording and backoff.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from jobworker.worker.failures import FailureHandler, backoff_seconds, format_error


def raise_and_capture(error: Exception) -> Exception:
    try:
        raise error
    except Exception as captured:
        return captured


class TestBackoff:
    """Tests for the backoff schedule."""

    @pytest.mark.parametrize(
        "error_count,expected",
        [(1, 4), (2, 19), (3, 84), (4, 259), (5, 628)],
    )
    def test_backoff_seconds(self, error_count, expected):
        """Test backoff is error_count^4 + 3."""
        assert backoff_seconds(error_count) == expected

    def test_backoff_strictly_increasing(self):
        """Test each failure waits longer than the last."""
        delays = [backoff_seconds(n) for n in range(1, 20)]
        assert delays == sorted(set(delays))


class TestFormatError:
    """Tests for error text."""

    def test_message_then_traceback(self):
        """Test the message comes first, followed by the traceback."""
        error = raise_and_capture(ValueError("boom"))

        text = format_error(error)

        assert text.startswith("boom\n")
        assert "raise_and_capture" in text
        assert "test_failures.py" in text

    def test_error_without_traceback(self):
        """Test errors that were never raised still format."""
        assert format_error(ValueError("never raised")) == "never raised"


class TestFailureHandler:
    """Tests for FailureHandler on the in-memory store."""

    def test_record_first_failure(self, store, clock):
        """Test the first failure sets count 1 and retries in 4 seconds."""
        job = store.enqueue("Boom")
        error = raise_and_capture(RuntimeError("boom"))

        with store.checkout() as repo:
            delay = FailureHandler(repo).record_failure(job, error)

        updated = store.get(job.job_id)
        assert delay == 4
        assert updated.error_count == 1
        assert updated.run_at == clock() + timedelta(seconds=4)
        assert updated.last_error.startswith("boom\n")

    def test_count_builds_on_fetched_count(self, store, clock):
        """Test the new count is the fetched count plus one."""
        job = store.enqueue("Boom")

        with store.checkout() as repo:
            handler = FailureHandler(repo)
            handler.record_failure(job, RuntimeError("first"))
            refetched = store.get(job.job_id)
            delay = handler.record_failure(refetched, RuntimeError("second"))

        updated = store.get(job.job_id)
        assert delay == 19
        assert updated.error_count == 2
        assert updated.run_at == clock() + timedelta(seconds=19)
        assert updated.last_error.startswith("second")

    def test_changed_row_left_alone(self, store):
        """Test a row rescheduled since fetch is not overwritten."""
        job = store.enqueue("Boom")
        stale = replace(job, run_at=job.run_at - timedelta(seconds=1))

        with store.checkout() as repo:
            FailureHandler(repo).record_failure(stale, RuntimeError("late"))

        untouched = store.get(job.job_id)
        assert untouched.error_count == 0
        assert untouched.last_error is None
