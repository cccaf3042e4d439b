"""
Worker process for PDF export jobs.

The worker runs several dispatcher loops that share one permit pool,
converts each dequeued job, and retries failures up to the retry ceiling.
On SIGINT/SIGTERM it stops dequeuing and waits for in-flight jobs.
"""

import asyncio
import logging
import os
import signal

from opentelemetry.trace import Tracer
from prometheus_client import start_http_server

from export_worker.config import Settings, get_settings
from export_worker.observability.logging import setup_logging
from export_worker.observability.metrics import MetricsCollector
from export_worker.observability.observer import JobObserver, TelemetryObserver
from export_worker.observability.tracing import setup_tracing, shutdown_tracing
from export_worker.queue.client import JobQueue
from export_worker.queue.store import InMemoryQueueStore, QueueStore, RedisQueueStore
from export_worker.worker.converter import Converter, SvgToPdfConverter
from export_worker.worker.dispatcher import Dispatcher
from export_worker.worker.processor import JobProcessor

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> QueueStore:
    """Build the queue store selected by configuration."""
    if settings.queue_backend == "memory":
        return InMemoryQueueStore()
    return RedisQueueStore.from_url(settings.redis_url)


def create_queue(store: QueueStore, settings: Settings) -> JobQueue:
    """Build a queue client configured from settings."""
    return JobQueue(
        store,
        queue_key=settings.queue_key,
        status_prefix=settings.status_key_prefix,
        dead_letter_key=settings.dead_letter_key,
        status_ttl_seconds=settings.status_ttl_seconds,
        dequeue_timeout_seconds=settings.dequeue_timeout_seconds,
        max_retries=settings.max_retries,
    )


class WorkerService:
    """
    PDF export worker.

    Features:
    - N dispatcher loops competing for one pool of worker_concurrency permits
    - Per-job status tracking and bounded retries through JobQueue
    - Graceful shutdown: stop dequeuing, then wait for every in-flight job
    """

    def __init__(
        self,
        queue: JobQueue,
        converter: Converter,
        observer: JobObserver,
        settings: Settings | None = None,
        tracer: Tracer | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: Queue client shared by all loops and tasks.
            converter: The SVG to PDF converter.
            observer: Receives job and heartbeat events.
            settings: Worker settings. Defaults to the cached settings.
            tracer: Tracer for processing spans.
        """
        settings = settings or get_settings()

        self.worker_id = settings.worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.concurrency = settings.worker_concurrency
        self.permits = asyncio.Semaphore(self.concurrency)

        processor = JobProcessor(
            queue=queue,
            converter=converter,
            observer=observer,
            convert_timeout_seconds=settings.convert_timeout_seconds,
            tracer=tracer,
        )
        self.dispatchers = [
            Dispatcher(
                worker_id=f"{self.worker_id}/{index}",
                queue=queue,
                processor=processor,
                permits=self.permits,
                observer=observer,
                error_backoff_seconds=settings.worker_error_backoff_seconds,
                heartbeat_every=settings.heartbeat_every,
            )
            for index in range(settings.effective_dispatcher_loops)
        ]

    @property
    def in_flight(self) -> int:
        return sum(dispatcher.in_flight for dispatcher in self.dispatchers)

    async def start(self) -> None:
        """Run all dispatcher loops until stopped, then drain in-flight jobs."""
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "concurrency": self.concurrency,
                "loops": len(self.dispatchers),
            },
        )

        await asyncio.gather(*(dispatcher.run() for dispatcher in self.dispatchers))

        if self.in_flight:
            logger.info(f"Waiting for {self.in_flight} jobs to complete")
        await asyncio.gather(*(dispatcher.drain() for dispatcher in self.dispatchers))

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        for dispatcher in self.dispatchers:
            await dispatcher.stop()


async def run_async(settings: Settings | None = None) -> None:
    """Run the worker asynchronously."""
    settings = settings or get_settings()

    setup_logging(settings)
    tracer = setup_tracing(settings)

    metrics = MetricsCollector()
    if settings.metrics_enabled:
        start_http_server(settings.metrics_port, registry=metrics.registry)

    logger.info(
        "Starting PDF export worker service",
        extra={
            "queue_backend": settings.queue_backend,
            "concurrency": settings.worker_concurrency,
        },
    )

    store = create_store(settings)
    if not await store.ping():
        logger.warning("Queue store did not answer ping; dispatchers will retry")

    worker = WorkerService(
        queue=create_queue(store, settings),
        converter=SvgToPdfConverter(settings.export_root),
        observer=TelemetryObserver(metrics, tracer),
        settings=settings,
        tracer=tracer,
    )

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await store.close()
        shutdown_tracing()
        logger.info("Worker service shutdown complete")


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
