"""
SQLAlchemy database models.
Defines the jobs table.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, SmallInteger, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobworker.constants import DEFAULT_PRIORITY, DEFAULT_QUEUE


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in the queue.

    A row lives from enqueue until a worker runs it successfully and deletes
    it. Failures never delete the row; they bump error_count and push run_at
    forward. Mutual exclusion between workers comes from session-level
    advisory locks keyed by job_id, not from row locks.
    """

    __tablename__ = "jobs"

    job_id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )

    # Selection
    queue: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DEFAULT_QUEUE,
        server_default="",
    )
    priority: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=DEFAULT_PRIORITY,
        server_default=str(DEFAULT_PRIORITY),
    )
    run_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Work description
    job_class: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    args: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default="[]",
    )

    # Error tracking
    error_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        # Dispatch order index for candidate selection
        Index("ix_jobs_dispatch", "queue", "priority", "run_at", "job_id"),
    )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.job_id}, queue={self.queue!r}, class={self.job_class}, "
            f"errors={self.error_count})"
        )
