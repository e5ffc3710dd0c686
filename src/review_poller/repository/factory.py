"""
Factory for review repositories.

Selects the storage backend from the configured database URL.
"""

import logging
from datetime import timedelta

from ..exceptions import ConfigurationError
from .base import ReviewRepository
from .memory import InMemoryReviewRepository
from .sqlite import SQLiteReviewRepository

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"
MEMORY_URL = "memory://"


class RepositoryFactory:
    """Factory for creating the repository matching a database URL."""

    @staticmethod
    def create_repository(
        database_url: str,
        seed_app_id: str | None = None,
        seed_interval: timedelta = timedelta(minutes=5),
    ) -> ReviewRepository:
        """
        Create a repository instance for a database URL.

        Args:
            database_url: ``sqlite:///<path>`` or ``memory://``
            seed_app_id: App registered as active when storage has no configs
            seed_interval: Polling interval for the seeded app

        Returns:
            ReviewRepository instance

        Raises:
            ConfigurationError: If the URL scheme is not supported
        """
        if database_url == MEMORY_URL:
            logger.info("Creating in-memory review repository")
            return InMemoryReviewRepository()

        if database_url.startswith(SQLITE_PREFIX):
            path = database_url[len(SQLITE_PREFIX) :]
            if not path:
                raise ConfigurationError(
                    f"Database URL has no path: {database_url}",
                    context={"database_url": database_url},
                )
            logger.info(f"Creating SQLite review repository at {path}")
            return SQLiteReviewRepository(
                path, seed_app_id=seed_app_id, seed_interval=seed_interval
            )

        raise ConfigurationError(
            f"Unsupported database URL: {database_url}. "
            f"Supported schemes: '{SQLITE_PREFIX}', '{MEMORY_URL}'",
            context={"database_url": database_url},
        )

    @staticmethod
    def get_supported_schemes() -> list[str]:
        """Get list of supported database URL schemes."""
        return [SQLITE_PREFIX, MEMORY_URL]
