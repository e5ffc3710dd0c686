"""
Polling scheduler for the App Review Poller.

This package contains the per-application pollers and the manager that
owns their lifecycle.
"""

from .manager import PollingManager
from .poller import AppPoller, PollerState

__all__ = ["PollingManager", "AppPoller", "PollerState"]
