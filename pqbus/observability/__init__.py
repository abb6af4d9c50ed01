"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from pqbus.observability.logging import (
    bind_queue_context,
    clear_context,
    get_logger,
    setup_logging,
)
from pqbus.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from pqbus.observability.tracing import get_tracer, instrument_sqlalchemy, setup_tracing

__all__ = [
    "setup_logging",
    "get_logger",
    "bind_queue_context",
    "clear_context",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "instrument_sqlalchemy",
]
