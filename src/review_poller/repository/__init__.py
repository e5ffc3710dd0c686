"""
Review storage for the App Review Poller.

This package provides the persistence interface used by the polling
scheduler and the HTTP layer, with in-memory and SQLite backends.
"""

from .base import ReviewRepository
from .factory import RepositoryFactory
from .memory import InMemoryReviewRepository
from .sqlite import SQLiteReviewRepository

__all__ = [
    "ReviewRepository",
    "RepositoryFactory",
    "InMemoryReviewRepository",
    "SQLiteReviewRepository",
]
