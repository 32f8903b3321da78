"""Initial schema with jobs table

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("job_id", sa.BigInteger, autoincrement=True, nullable=False),
        sa.Column("queue", sa.Text, nullable=False, server_default=""),
        sa.Column("priority", sa.SmallInteger, nullable=False, server_default="100"),
        sa.Column(
            "run_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("job_class", sa.Text, nullable=False),
        sa.Column("args", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("error_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("job_id"),
    )

    # Dispatch order: priority, then run_at, then insertion order
    op.create_index(
        "ix_jobs_dispatch",
        "jobs",
        ["queue", "priority", "run_at", "job_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_jobs_dispatch")
    op.drop_table("jobs")
