"""
Observability module.
Contains logging, metrics, tracing setup and the job lifecycle observers.
"""

from export_worker.observability.logging import bind_context, setup_logging
from export_worker.observability.metrics import MetricsCollector
from export_worker.observability.observer import (
    JobObserver,
    NullObserver,
    TelemetryObserver,
)
from export_worker.observability.tracing import setup_tracing, shutdown_tracing

__all__ = [
    "setup_logging",
    "bind_context",
    "MetricsCollector",
    "setup_tracing",
    "shutdown_tracing",
    "JobObserver",
    "NullObserver",
    "TelemetryObserver",
]
