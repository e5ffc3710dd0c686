"""
Custom exceptions for the App Review Poller.

This module defines the exception hierarchy shared by the feed client,
the persistence backends and the polling scheduler.
"""

from typing import Any


class ReviewPollerError(Exception):
    """Base exception for App Review Poller errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "REVIEW_POLLER_ERROR"
        self.context = context or {}


class FeedFetchError(ReviewPollerError):
    """Exception for review feed retrieval errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "FEED_FETCH_ERROR", context)
        self.status_code = status_code


class FeedParseError(FeedFetchError):
    """Exception for feed documents that cannot be decoded."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.code = "FEED_PARSE_ERROR"


class DatabaseError(ReviewPollerError):
    """Exception for database related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "DATABASE_ERROR", context)


class ConfigurationError(ReviewPollerError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)


class InvalidIntervalError(ConfigurationError):
    """Exception for polling intervals that cannot be scheduled."""

    def __init__(self, message: str, interval: str | None = None):
        super().__init__(message, context={"interval": interval})
        self.code = "INVALID_INTERVAL_ERROR"
        self.interval = interval
