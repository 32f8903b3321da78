"""
Database module.
Contains the jobs table, connection management and job store implementations.
"""

from jobworker.db.base import Checkout, JobStore
from jobworker.db.connection import (
    close_db,
    get_engine,
    init_db,
    make_checkout,
)
from jobworker.db.memory import InMemoryJobStore, InMemoryRepository
from jobworker.db.models import Base, Job
from jobworker.db.repository import JobRepository

__all__ = [
    "Checkout",
    "JobStore",
    "get_engine",
    "init_db",
    "close_db",
    "make_checkout",
    "JobRepository",
    "InMemoryJobStore",
    "InMemoryRepository",
    "Job",
    "Base",
]
