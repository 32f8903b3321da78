"""
Database connection management.
Handles SQLAlchemy engine creation and connection checkout for workers.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import NullPool

from jobworker.config import get_settings
from jobworker.db.repository import JobRepository

logger = logging.getLogger(__name__)

# Global engine instance
_engine: Engine | None = None


def get_engine() -> Engine:
    """
    Get or create the database engine.

    Returns:
        Engine: The SQLAlchemy engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.log_level == "DEBUG",
            pool_pre_ping=True,
        )
    return _engine


def get_test_engine(database_url: str) -> Engine:
    """
    Create a test database engine with NullPool.

    Args:
        database_url: The database URL for testing.

    Returns:
        Engine: The test SQLAlchemy engine instance.
    """
    return create_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )


def init_db() -> Engine:
    """
    Initialize the database engine.
    Should be called on worker startup.
    """
    engine = get_engine()
    logger.info("Database connection initialized")
    return engine


def close_db() -> None:
    """
    Dispose of the database engine.
    Should be called on worker shutdown.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database connection closed")


def make_checkout(engine: Engine):
    """
    Build a checkout callable bound to an engine.

    Each checkout holds one pooled connection in autocommit mode for the
    duration of the block. Advisory locks are session-scoped, so they live
    exactly as long as this connection does.

    Args:
        engine: The engine to draw connections from.

    Returns:
        A zero-argument callable returning a context manager that yields
        a JobRepository.
    """

    @contextmanager
    def checkout() -> Generator[JobRepository]:
        with engine.connect() as connection:
            connection.execution_options(isolation_level="AUTOCOMMIT")
            yield JobRepository(connection)

    return checkout
