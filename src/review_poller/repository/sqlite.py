"""
SQLite review repository.

Queries run in a worker thread under a single lock so the event loop is
never blocked and the connection is never used from two threads at once.
"""

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar

from ..exceptions import DatabaseError
from ..models import AppPollingConfig, Review
from .base import ReviewRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS reviews (
    id TEXT PRIMARY KEY,
    app_id TEXT NOT NULL,
    author TEXT NOT NULL,
    rating INTEGER NOT NULL,
    title TEXT,
    content TEXT NOT NULL,
    submitted_date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_reviews_app_date
    ON reviews(app_id, submitted_date DESC);
CREATE INDEX IF NOT EXISTS idx_reviews_rating
    ON reviews(app_id, rating DESC);

CREATE TABLE IF NOT EXISTS app_configs (
    app_id TEXT PRIMARY KEY,
    poll_interval_seconds REAL NOT NULL DEFAULT 300,
    last_poll TEXT,
    is_active INTEGER NOT NULL DEFAULT 1
);
"""


def _to_db(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical and chronological order identical.
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _from_db(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SQLiteReviewRepository(ReviewRepository):
    """Repository backed by a local SQLite database file."""

    def __init__(
        self,
        path: str,
        seed_app_id: str | None = None,
        seed_interval: timedelta = timedelta(minutes=5),
    ) -> None:
        """
        Open (and migrate) the database.

        Args:
            path: Database file path, or ":memory:"
            seed_app_id: App to register as active when no config exists yet
            seed_interval: Polling interval for the seeded app
        """
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self._migrate(seed_app_id, seed_interval)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open database {path}: {e}") from e

        logger.info(f"Opened SQLite review repository at {path}")

    def _migrate(self, seed_app_id: str | None, seed_interval: timedelta) -> None:
        with self._lock:
            self.conn.executescript(SCHEMA)
            count = self.conn.execute("SELECT COUNT(*) FROM app_configs").fetchone()[0]
            if count == 0 and seed_app_id:
                self.conn.execute(
                    "INSERT INTO app_configs (app_id, poll_interval_seconds, is_active) "
                    "VALUES (?, ?, 1)",
                    (seed_app_id, seed_interval.total_seconds()),
                )
                logger.info(f"Seeded polling config for app {seed_app_id}")
            self.conn.commit()

    async def _run(self, operation: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._locked, operation, *args)

    def _locked(self, operation: Callable[..., T], *args: Any) -> T:
        with self._lock:
            try:
                return operation(*args)
            except sqlite3.Error as e:
                self.conn.rollback()
                raise DatabaseError(
                    f"SQLite operation {operation.__name__} failed: {e}",
                    context={"path": self.path},
                ) from e

    async def create_review(self, review: Review) -> None:
        """Insert a review, ignoring ids that are already stored."""
        await self._run(self._insert_review, review)

    def _insert_review(self, review: Review) -> None:
        self.conn.execute(
            """
            INSERT OR IGNORE INTO reviews
            (id, app_id, author, rating, title, content, submitted_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                review.id,
                review.app_id,
                review.author,
                review.rating,
                review.title,
                review.content,
                _to_db(review.submitted_date),
                _to_db(review.created_at),
            ),
        )
        self.conn.commit()

    async def review_exists(self, review_id: str) -> bool:
        """Check whether a review id is stored."""
        return await self._run(self._review_exists, review_id)

    def _review_exists(self, review_id: str) -> bool:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM reviews WHERE id = ?", (review_id,)
        ).fetchone()
        return row[0] > 0

    async def get_reviews(
        self, app_id: str, hours: int, limit: int
    ) -> list[Review]:
        """Get reviews submitted within the last ``hours``, newest first."""
        cutoff = datetime.now(UTC) - timedelta(hours=hours)
        return await self._run(self._select_reviews, app_id, _to_db(cutoff), limit)

    def _select_reviews(self, app_id: str, cutoff: str, limit: int) -> list[Review]:
        rows = self.conn.execute(
            """
            SELECT * FROM reviews
            WHERE app_id = ? AND submitted_date >= ?
            ORDER BY submitted_date DESC
            LIMIT ?
            """,
            (app_id, cutoff, limit),
        ).fetchall()
        return [
            Review(
                id=row["id"],
                app_id=row["app_id"],
                author=row["author"],
                rating=row["rating"],
                title=row["title"],
                content=row["content"],
                submitted_date=_from_db(row["submitted_date"]),
                created_at=_from_db(row["created_at"]),
            )
            for row in rows
        ]

    async def get_app_config(self, app_id: str) -> AppPollingConfig | None:
        """Get polling config for an app."""
        return await self._run(self._select_app_config, app_id)

    def _select_app_config(self, app_id: str) -> AppPollingConfig | None:
        row = self.conn.execute(
            "SELECT * FROM app_configs WHERE app_id = ?", (app_id,)
        ).fetchone()
        if row is None:
            return None
        return AppPollingConfig(
            app_id=row["app_id"],
            poll_interval=timedelta(seconds=row["poll_interval_seconds"]),
            last_poll=_from_db(row["last_poll"]) if row["last_poll"] else None,
            is_active=bool(row["is_active"]),
        )

    async def upsert_app_config(self, config: AppPollingConfig) -> None:
        """Insert or replace polling config for an app."""
        await self._run(self._replace_app_config, config)

    def _replace_app_config(self, config: AppPollingConfig) -> None:
        self.conn.execute(
            """
            INSERT OR REPLACE INTO app_configs
            (app_id, poll_interval_seconds, last_poll, is_active)
            VALUES (?, ?, ?, ?)
            """,
            (
                config.app_id,
                config.poll_interval.total_seconds(),
                _to_db(config.last_poll) if config.last_poll else None,
                int(config.is_active),
            ),
        )
        self.conn.commit()

    async def get_active_apps(self) -> list[str]:
        """Get ids of active apps."""
        return await self._run(self._select_active_apps)

    def _select_active_apps(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT app_id FROM app_configs WHERE is_active = 1 ORDER BY app_id"
        ).fetchall()
        return [row["app_id"] for row in rows]

    async def health_check(self) -> bool:
        """Run a trivial query against the database."""
        try:
            await self._run(self._ping)
            return True
        except DatabaseError as e:
            logger.error(f"SQLite health check failed: {e}")
            return False

    def _ping(self) -> None:
        self.conn.execute("SELECT 1").fetchone()

    async def close(self) -> None:
        """Close the database connection once in-flight queries finish."""
        await asyncio.to_thread(self._close)
        logger.info(f"Closed SQLite review repository at {self.path}")

    def _close(self) -> None:
        with self._lock:
            self.conn.close()
