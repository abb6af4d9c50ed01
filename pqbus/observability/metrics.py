"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from pqbus.constants import (
    METRIC_CLAIM_EMPTY,
    METRIC_DECODE_FAILURES,
    METRIC_MESSAGES_CLAIMED,
    METRIC_MESSAGES_PUSHED,
    METRIC_NOTIFICATIONS_RECEIVED,
    METRIC_QUEUE_SIZE,
    METRIC_WAIT_SECONDS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for pqbus queues.

    Every metric is labelled with the queue's channel name.

    Collects metrics for:
    - Messages pushed and claimed
    - Empty claim attempts and decode failures
    - Notifications received and time spent waiting for them
    - Queue size as last observed by size()
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.messages_pushed = Counter(
            METRIC_MESSAGES_PUSHED,
            "Total number of messages pushed",
            ["queue"],
            registry=self._registry,
        )

        self.messages_claimed = Counter(
            METRIC_MESSAGES_CLAIMED,
            "Total number of messages claimed",
            ["queue"],
            registry=self._registry,
        )

        self.claim_empty = Counter(
            METRIC_CLAIM_EMPTY,
            "Total number of claim attempts that found nothing",
            ["queue"],
            registry=self._registry,
        )

        self.decode_failures = Counter(
            METRIC_DECODE_FAILURES,
            "Total number of claimed messages that failed to decode",
            ["queue"],
            registry=self._registry,
        )

        self.notifications_received = Counter(
            METRIC_NOTIFICATIONS_RECEIVED,
            "Total number of wakeups from the notification channel",
            ["queue"],
            registry=self._registry,
        )

        # Total rows, claimed or not
        self.queue_size = Gauge(
            METRIC_QUEUE_SIZE,
            "Number of rows in the queue table",
            ["queue"],
            registry=self._registry,
        )

        self.wait_seconds = Histogram(
            METRIC_WAIT_SECONDS,
            "Time spent waiting for a notification",
            ["queue"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0),
            registry=self._registry,
        )

    def record_pushed(self, queue: str) -> None:
        self.messages_pushed.labels(queue=queue).inc()

    def record_claimed(self, queue: str) -> None:
        self.messages_claimed.labels(queue=queue).inc()

    def record_claim_empty(self, queue: str) -> None:
        self.claim_empty.labels(queue=queue).inc()

    def record_decode_failure(self, queue: str) -> None:
        self.decode_failures.labels(queue=queue).inc()

    def record_wait(self, queue: str, duration_seconds: float, notified: bool) -> None:
        """Record one wait and whether it ended with a notification."""
        self.wait_seconds.labels(queue=queue).observe(duration_seconds)
        if notified:
            self.notifications_received.labels(queue=queue).inc()

    def update_queue_size(self, queue: str, size: int) -> None:
        self.queue_size.labels(queue=queue).set(size)

    def get_metrics(self) -> bytes:
        """Render this collector's registry in Prometheus text format."""
        return generate_latest(self._registry)


def setup_metrics(port: int | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: If given, also serve /metrics over HTTP on this port.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    if port is not None:
        start_http_server(port, registry=_metrics._registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
