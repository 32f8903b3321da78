"""
Durable Job Worker

A storage-backed job worker that claims pending jobs from a shared PostgreSQL
queue under advisory locks, executes them, and reschedules failures with
exponential backoff.
"""

__version__ = "1.0.0"
