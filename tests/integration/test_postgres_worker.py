"""
Integration tests for the worker against PostgreSQL.
"""

import pytest
import sqlalchemy as sa

from jobworker.constants import StepResult
from jobworker.db.models import Job


def advisory_lock_count(engine) -> int:
    with engine.connect() as connection:
        return connection.execute(
            sa.text(
                "SELECT count(*) FROM pg_locks WHERE locktype = 'advisory' "
                "AND database = (SELECT oid FROM pg_database WHERE datname = current_database())"
            )
        ).scalar_one()


class TestPostgresWorker:
    """Worker steps on a real database."""

    @pytest.fixture
    def pg_worker(self, make_worker, pg_checkout):
        return make_worker(checkout=pg_checkout)

    @pytest.fixture
    def enqueue(self, pg_checkout):
        def create(job_class, args=(), **kwargs):
            with pg_checkout() as repo:
                return repo.enqueue(job_class, args, **kwargs)

        return create

    def test_success_deletes_row(self, pg_worker, enqueue, pg_engine, handler_calls, sink):
        """Test a worked job is gone and its lock released."""
        job = enqueue("Record", ["payload"])

        assert pg_worker.step() == StepResult.WORKED

        with pg_engine.connect() as connection:
            remaining = connection.execute(sa.select(sa.func.count()).select_from(Job)).scalar_one()
        assert remaining == 0
        assert handler_calls == [(job.job_id, ("payload",))]
        assert sink.events() == ["job_worked"]
        assert advisory_lock_count(pg_engine) == 0

    def test_failure_reschedules_row(self, pg_worker, enqueue, pg_engine):
        """Test a failing job stays with its error recorded and is not eligible."""
        job = enqueue("Boom")

        assert pg_worker.step() == StepResult.WORKED

        with pg_engine.connect() as connection:
            row = connection.execute(sa.select(Job).where(Job.job_id == job.job_id)).first()
        assert row.error_count == 1
        assert row.last_error.startswith("boom")
        assert row.run_at > job.run_at
        assert advisory_lock_count(pg_engine) == 0

        assert pg_worker.step() == StepResult.NO_JOB

    def test_priority_order(self, pg_worker, enqueue, handler_calls):
        """Test the most urgent job is worked first."""
        later = enqueue("Record", priority=50)
        first = enqueue("Record", priority=5)

        assert pg_worker.step() == StepResult.WORKED
        assert pg_worker.step() == StepResult.WORKED
        assert pg_worker.step() == StepResult.NO_JOB

        assert [job_id for job_id, _ in handler_calls] == [first.job_id, later.job_id]

    def test_skips_job_locked_elsewhere(self, pg_worker, enqueue, pg_checkout, handler_calls):
        """Test a job locked on another connection is not worked."""
        locked = enqueue("Record", priority=1)
        free = enqueue("Record", priority=2)

        with pg_checkout() as other:
            assert other.try_advisory_lock(locked.job_id)
            try:
                assert pg_worker.step() == StepResult.WORKED
                assert pg_worker.step() == StepResult.NO_JOB
            finally:
                other.advisory_unlock(locked.job_id)

        assert handler_calls == [(free.job_id, ())]
        assert pg_worker.step() == StepResult.WORKED
