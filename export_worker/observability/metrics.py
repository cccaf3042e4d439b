"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from export_worker.constants import (
    METRIC_DEAD_LETTERED,
    METRIC_HEARTBEATS,
    METRIC_JOB_DURATION,
    METRIC_JOB_RETRIES,
    METRIC_JOBS_FINISHED,
    METRIC_JOBS_SUBMITTED,
    METRIC_QUEUE_DEPTH,
)


class MetricsCollector:
    """
    Prometheus metrics collector for the export service.

    Collects metrics for:
    - Queue depth (sampled by worker heartbeats)
    - Job submissions and finished attempts
    - Job duration
    - Retries and dead-lettered entries

    Each collector owns its registry unless one is passed in, so the API and
    the worker (and every test) can build their own without clashing.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional registry. A private one is created if omitted.
        """
        self.registry = registry or CollectorRegistry()

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Approximate number of jobs waiting in the queue",
            registry=self.registry,
        )

        self.jobs_submitted = Counter(
            METRIC_JOBS_SUBMITTED,
            "Total number of export jobs submitted",
            registry=self.registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of finished export attempts",
            ["status"],
            registry=self.registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Export job duration from creation to terminal transition in seconds",
            ["status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self.registry,
        )

        self.job_retries = Counter(
            METRIC_JOB_RETRIES,
            "Total number of failed attempts that were already retries",
            registry=self.registry,
        )

        self.heartbeats = Counter(
            METRIC_HEARTBEATS,
            "Total number of worker heartbeats",
            registry=self.registry,
        )

        self.dead_lettered = Counter(
            METRIC_DEAD_LETTERED,
            "Total number of corrupt queue entries moved to the dead-letter list",
            registry=self.registry,
        )

    def record_job_submitted(self) -> None:
        """Record a job submission."""
        self.jobs_submitted.inc()

    def record_job_finished(
        self,
        status: str,
        duration_seconds: float | None,
        retry_count: int = 0,
    ) -> None:
        """Record the outcome of one processing attempt."""
        self.jobs_finished.labels(status=status).inc()
        if duration_seconds is not None:
            self.job_duration.labels(status=status).observe(duration_seconds)
        if retry_count > 0:
            self.job_retries.inc()

    def record_heartbeat(self, queue_length: int) -> None:
        """Record a worker heartbeat and the sampled queue depth."""
        self.heartbeats.inc()
        self.queue_depth.set(queue_length)

    def record_dead_lettered(self) -> None:
        """Record a quarantined queue entry."""
        self.dead_lettered.inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST
