"""
Library constants.
Centralized location for all constant values used across pqbus.
"""

from enum import StrEnum

# Bus and queue names must match this before they are used in identifiers
NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"

# PostgreSQL truncates identifiers and channel names beyond this many bytes
MAX_IDENTIFIER_LENGTH = 63

# Storage naming: schema "pqbus_<bus>", table "<queue>_queue"
SCHEMA_PREFIX = "pqbus_"
TABLE_SUFFIX = "_queue"

# Key for the advisory lock serializing queue DDL across sessions ("pqbus")
SCHEMA_LOCK_KEY = 0x7071627573

# Connection retry defaults
DEFAULT_CONNECT_MAX_ATTEMPTS = 10
DEFAULT_CONNECT_BACKOFF_SECONDS = 0.1
DEFAULT_CONNECT_BACKOFF_MAX_SECONDS = 5.0


class WorkerMode(StrEnum):
    """Modes of the bundled worker process."""

    CONSUMER = "consumer"
    PUBLISHER = "publisher"


# Metrics names
METRIC_MESSAGES_PUSHED = "pqbus_messages_pushed_total"
METRIC_MESSAGES_CLAIMED = "pqbus_messages_claimed_total"
METRIC_CLAIM_EMPTY = "pqbus_claim_empty_total"
METRIC_DECODE_FAILURES = "pqbus_decode_failures_total"
METRIC_NOTIFICATIONS_RECEIVED = "pqbus_notifications_received_total"
METRIC_QUEUE_SIZE = "pqbus_queue_size"
METRIC_WAIT_SECONDS = "pqbus_wait_seconds"

# Trace span names
SPAN_ENSURE_QUEUE = "pqbus.ensure_queue"
SPAN_PUSH = "pqbus.push"
SPAN_POP = "pqbus.pop"
