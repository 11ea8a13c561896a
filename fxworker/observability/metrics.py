"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

from fxworker.constants import (
    METRIC_CYCLE_DURATION,
    METRIC_JOBS_PROCESSED,
    METRIC_QUEUE_FAILURES,
    METRIC_QUEUE_RETRIES,
    METRIC_RATE_FETCHES,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for a rate worker.

    Collects metrics for:
    - Lifecycle cycle outcomes (finished, buried, requeued)
    - Rate fetch outcomes
    - Queue operation retries and permanent failures
    - Cycle duration
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_processed = Counter(
            METRIC_JOBS_PROCESSED,
            "Total number of lifecycle cycles by outcome",
            ["worker_id", "outcome"],
            registry=self._registry,
        )

        self.rate_fetches = Counter(
            METRIC_RATE_FETCHES,
            "Total number of rate acquisitions by result",
            ["worker_id", "result"],
            registry=self._registry,
        )

        self.queue_retries = Counter(
            METRIC_QUEUE_RETRIES,
            "Total number of failed queue operation attempts",
            ["operation"],
            registry=self._registry,
        )

        self.queue_failures = Counter(
            METRIC_QUEUE_FAILURES,
            "Total number of queue operations that exhausted their retries",
            ["operation"],
            registry=self._registry,
        )

        self.cycle_duration = Histogram(
            METRIC_CYCLE_DURATION,
            "Lifecycle cycle duration in seconds, excluding reservation wait",
            ["outcome"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

    def record_cycle(self, worker_id: str, outcome: str, duration_seconds: float) -> None:
        """Record a completed lifecycle cycle."""
        self.jobs_processed.labels(worker_id=worker_id, outcome=outcome).inc()
        self.cycle_duration.labels(outcome=outcome).observe(duration_seconds)

    def record_rate_fetch(self, worker_id: str, success: bool) -> None:
        """Record a rate acquisition result."""
        result = "success" if success else "fail"
        self.rate_fetches.labels(worker_id=worker_id, result=result).inc()

    def record_queue_retry(self, operation: str) -> None:
        """Record a failed queue operation attempt."""
        self.queue_retries.labels(operation=operation).inc()

    def record_queue_failure(self, operation: str) -> None:
        """Record a queue operation that exhausted its retries."""
        self.queue_failures.labels(operation=operation).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)


def setup_metrics(port: int = 0) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        port: Serve the registry over HTTP on this port. 0 disables serving.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
        if port:
            start_http_server(port)
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
