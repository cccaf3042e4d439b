"""
Dispatcher loop: pulls jobs off the queue and hands them to processing tasks.

Several dispatchers may share one permit pool (an asyncio.Semaphore). The
pool, not the number of loops, bounds how many jobs are processed at once.
"""

import asyncio
import logging

from export_worker.constants import ERROR_BACKOFF_SECONDS, HEARTBEAT_EVERY
from export_worker.observability.logging import bind_context
from export_worker.observability.observer import JobObserver
from export_worker.queue.client import JobDeserializationError, JobQueue, QueueError
from export_worker.types.job import ExportJob
from export_worker.worker.processor import JobProcessor

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    One dequeue loop.

    Each iteration:
    1. Blocking dequeue (returns None after the dequeue timeout)
    2. Acquire a permit from the shared pool, suspending this loop only
    3. Spawn a processing task; the permit is released when it finishes
    4. Sample the queue length, emitting a heartbeat every Kth sample

    Queue errors and unexpected failures back off for a fixed interval;
    corrupt entries are moved to the dead-letter list.
    """

    def __init__(
        self,
        worker_id: str,
        queue: JobQueue,
        processor: JobProcessor,
        permits: asyncio.Semaphore,
        observer: JobObserver,
        error_backoff_seconds: float = ERROR_BACKOFF_SECONDS,
        heartbeat_every: int = HEARTBEAT_EVERY,
    ):
        """
        Initialize the dispatcher.

        Args:
            worker_id: Identifier used in logs.
            queue: Queue client shared with the processor.
            processor: Runs each dequeued job.
            permits: Permit pool shared by every dispatcher of the process.
            observer: Receives heartbeats and dead-letter events.
            error_backoff_seconds: Sleep after a failed dequeue.
            heartbeat_every: Emit a heartbeat every this many queue samples.
        """
        self.worker_id = worker_id
        self.queue = queue
        self.processor = processor
        self.permits = permits
        self.observer = observer
        self.error_backoff_seconds = error_backoff_seconds
        self.heartbeat_every = max(1, heartbeat_every)

        self._running = False
        self._stopped = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._samples = 0

    @property
    def in_flight(self) -> int:
        """Number of processing tasks spawned by this loop still running."""
        return len(self._tasks)

    async def run(self) -> None:
        """Run the loop until stop() is called."""
        logger.info("Dispatcher started", extra={"worker_id": self.worker_id})
        self._running = True

        while self._running:
            try:
                job = await self.queue.dequeue()
            except JobDeserializationError as e:
                await self._quarantine(e)
                continue
            except QueueError as e:
                logger.error(
                    f"Failed to dequeue job: {e}",
                    extra={"worker_id": self.worker_id},
                )
                await self._backoff()
                continue
            except Exception as e:
                logger.exception(
                    f"Error in dispatcher loop: {e}",
                    extra={"worker_id": self.worker_id},
                )
                await self._backoff()
                continue

            if job is None:
                continue

            # A popped job is always processed, even if stop() was called
            # while waiting here.
            await self.permits.acquire()
            self._spawn(job)

            await self._sample_queue_length()

        logger.info("Dispatcher stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop dequeuing. In-flight tasks are left running; see drain()."""
        logger.info("Dispatcher stopping", extra={"worker_id": self.worker_id})
        self._running = False
        self._stopped.set()

    async def drain(self) -> None:
        """Wait for every processing task spawned by this loop."""
        if not self._tasks:
            return

        logger.info(
            f"Waiting for {len(self._tasks)} jobs to complete",
            extra={"worker_id": self.worker_id},
        )
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, job: ExportJob) -> None:
        task = asyncio.create_task(
            self._process(job), name=f"export-job-{job.job_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        # Runs for every outcome, including cancellation before the task
        # ever started.
        self._tasks.discard(task)
        self.permits.release()

    async def _process(self, job: ExportJob) -> None:
        bind_context(job_id=job.job_id, worker_id=self.worker_id)
        try:
            await self.processor.process(job)
        except Exception:
            logger.exception(
                "Exception processing job",
                extra={"job_id": job.job_id, "worker_id": self.worker_id},
            )

    async def _backoff(self) -> None:
        try:
            await asyncio.wait_for(
                self._stopped.wait(), timeout=self.error_backoff_seconds
            )
        except TimeoutError:
            pass

    async def _quarantine(self, error: JobDeserializationError) -> None:
        logger.error(
            f"Dropping corrupt queue entry: {error}",
            extra={"worker_id": self.worker_id},
        )
        try:
            await self.queue.quarantine(error.raw, str(error))
        except QueueError as e:
            logger.error(
                f"Corrupt entry lost, quarantine failed: {e}",
                extra={"worker_id": self.worker_id, "raw": error.raw[:200]},
            )
            return

        try:
            self.observer.on_dead_lettered(str(error))
        except Exception:
            logger.exception("Observer raised while recording dead letter")

    async def _sample_queue_length(self) -> None:
        try:
            queue_length = await self.queue.queue_length()
        except QueueError as e:
            logger.debug(f"Queue length sample failed: {e}")
            return

        self._samples += 1
        if self._samples % self.heartbeat_every != 0:
            return

        try:
            self.observer.on_heartbeat(queue_length)
        except Exception:
            logger.exception("Observer raised while recording heartbeat")
