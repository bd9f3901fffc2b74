"""
Shared plumbing for the gateway and the console dashboard:
structured event log, exception hierarchy, upstream HTTP session.
"""

from .exceptions import DashboardError, FetchError, MissingConfigError
from .structured_log import jlog, read_recent_logs

__all__ = [
    "DashboardError",
    "FetchError",
    "MissingConfigError",
    "jlog",
    "read_recent_logs",
]
