"""
Job lifecycle observers.

The worker reports two events to an observer it is constructed with:
- on_job_finished: once per processing attempt, with the job's final state
- on_heartbeat: periodically, with the sampled queue length

Observers are fire-and-forget. Callers guard every call, but implementations
should not raise in the first place.
"""

import logging
from abc import ABC, abstractmethod

from opentelemetry.trace import Tracer

from export_worker.constants import (
    SLOW_EXPORT_THRESHOLD_MS,
    SPAN_HEARTBEAT,
    SPAN_JOB_FINISHED,
    JobStatus,
)
from export_worker.observability.metrics import MetricsCollector
from export_worker.types.job import ExportJob

logger = logging.getLogger(__name__)


class JobObserver(ABC):
    """Receives job lifecycle events from the worker."""

    @abstractmethod
    def on_job_finished(self, job: ExportJob) -> None:
        """Called after each processing attempt."""
        ...

    @abstractmethod
    def on_heartbeat(self, queue_length: int) -> None:
        """Called periodically by dispatcher loops."""
        ...

    def on_dead_lettered(self, reason: str) -> None:
        """Called when a corrupt queue entry is quarantined."""
        return None


class NullObserver(JobObserver):
    """Observer that ignores every event."""

    def on_job_finished(self, job: ExportJob) -> None:
        return None

    def on_heartbeat(self, queue_length: int) -> None:
        return None


class TelemetryObserver(JobObserver):
    """
    Records job events as Prometheus metrics and OpenTelemetry spans.

    Args:
        metrics: Collector receiving counters, histograms and gauges.
        tracer: Tracer used for the per-job and heartbeat spans.
    """

    def __init__(self, metrics: MetricsCollector, tracer: Tracer):
        self._metrics = metrics
        self._tracer = tracer

    def on_job_finished(self, job: ExportJob) -> None:
        duration_ms = job.processing_duration_ms()

        with self._tracer.start_as_current_span(SPAN_JOB_FINISHED) as span:
            span.set_attribute("job_id", job.job_id)
            span.set_attribute("document_id", job.document_id)
            span.set_attribute("status", job.status.value)
            span.set_attribute("retry_count", job.retry_count)
            span.set_attribute("export_scope", job.metadata.export_scope)
            span.set_attribute("artboard_count", len(job.metadata.artboard_ids))
            span.set_attribute("client_version", job.metadata.client_version)

            if duration_ms is not None:
                span.set_attribute("duration_ms", duration_ms)
                if duration_ms > SLOW_EXPORT_THRESHOLD_MS:
                    logger.warning(
                        f"PDF export exceeded performance threshold ({SLOW_EXPORT_THRESHOLD_MS}ms)",
                        extra={"job_id": job.job_id, "duration_ms": duration_ms},
                    )

            if job.status == JobStatus.FAILED and job.error is not None:
                span.set_attribute("error", job.error)
                logger.warning(
                    "PDF export job failed",
                    extra={
                        "job_id": job.job_id,
                        "error": job.error,
                        "retry_count": job.retry_count,
                    },
                )

        self._metrics.record_job_finished(
            status=job.status.value,
            duration_seconds=duration_ms / 1000 if duration_ms is not None else None,
            retry_count=job.retry_count,
        )

    def on_heartbeat(self, queue_length: int) -> None:
        with self._tracer.start_as_current_span(SPAN_HEARTBEAT) as span:
            span.set_attribute("queue_length", queue_length)

        self._metrics.record_heartbeat(queue_length)
        logger.info("Worker heartbeat", extra={"queue_length": queue_length})

    def on_dead_lettered(self, reason: str) -> None:
        self._metrics.record_dead_lettered()
