"""
App Review Poller

Periodically collects App Store customer reviews for tracked applications
and serves them, together with per-app polling configuration, over HTTP.
"""

__version__ = "0.1.0"
__author__ = "App Review Poller"
__email__ = "support@example.com"

from .config import Settings
from .exceptions import ReviewPollerError
from .feed_client import FeedClient
from .polling import PollingManager
from .repository import RepositoryFactory, ReviewRepository

__all__ = [
    "Settings",
    "FeedClient",
    "PollingManager",
    "ReviewPollerError",
    "RepositoryFactory",
    "ReviewRepository",
]
