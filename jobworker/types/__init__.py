"""
Type definitions for the job worker.
"""

from jobworker.types.job import (
    JobContext,
    JobResult,
)

__all__ = [
    "JobContext",
    "JobResult",
]
