"""
Database module.
Contains connection management, table definitions, the queue repository and notifications.
"""

from pqbus.db.connection import (
    RetryPolicy,
    exponential_backoff,
    is_transient_error,
    open_connection,
    redact_url,
)
from pqbus.db.models import queue_table
from pqbus.db.notifications import Subscription
from pqbus.db.repository import QueueRepository

__all__ = [
    "open_connection",
    "redact_url",
    "RetryPolicy",
    "exponential_backoff",
    "is_transient_error",
    "queue_table",
    "QueueRepository",
    "Subscription",
]
