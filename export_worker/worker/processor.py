"""
Job processor: drives one dequeued export job through a processing attempt.

Lifecycle of an attempt:
1. Mark PROCESSING and publish status (best effort)
2. Run the converter in a worker thread, optionally bounded by a timeout
3. On success mark COMPLETE and publish status
4. On failure mark FAILED and hand the job to JobQueue.retry_job
5. Report the attempt's final state to the observer

Nothing in here raises back to the dispatcher; status writes and observer
calls are advisory and their failures are only logged.
"""

import asyncio
import logging

from opentelemetry import trace
from opentelemetry.trace import Tracer

from export_worker.constants import SPAN_PROCESS_JOB
from export_worker.observability.observer import JobObserver
from export_worker.queue.client import JobQueue, QueueError
from export_worker.types.job import ExportJob
from export_worker.worker.converter import Converter

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """
    Render an exception and its causes as one line.

    Example: "Failed to render SVG: unknown element"
    """
    parts: list[str] = []
    current: BaseException | None = error
    seen: set[int] = set()

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        if not parts or parts[-1] != message:
            parts.append(message)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None

    return ": ".join(parts)


class JobProcessor:
    """
    Processes export jobs one attempt at a time.

    A processor holds no per-job state and is shared by every task of a
    dispatcher; each call to process() owns the job it was given.
    """

    def __init__(
        self,
        queue: JobQueue,
        converter: Converter,
        observer: JobObserver,
        convert_timeout_seconds: float | None = None,
        tracer: Tracer | None = None,
    ):
        """
        Initialize the processor.

        Args:
            queue: Queue client used for status writes and retries.
            converter: The SVG to PDF converter.
            observer: Receives the final state of every attempt.
            convert_timeout_seconds: Upper bound for one conversion.
                None leaves conversions unbounded.
            tracer: Tracer for the per-attempt span.
        """
        self.queue = queue
        self.converter = converter
        self.observer = observer
        self.convert_timeout_seconds = convert_timeout_seconds
        self._tracer = tracer or trace.get_tracer(__name__)

    async def _publish_status(self, job: ExportJob) -> None:
        try:
            await self.queue.update_status(job)
        except QueueError as e:
            logger.error(
                f"Failed to update job status: {e}",
                extra={"job_id": job.job_id, "status": job.status.value},
            )

    async def _convert(self, job: ExportJob) -> None:
        call = asyncio.ensure_future(
            asyncio.to_thread(self.converter.convert, job.svg_content, job.output_path)
        )
        if self.convert_timeout_seconds is None:
            await call
            return

        try:
            await asyncio.wait_for(asyncio.shield(call), timeout=self.convert_timeout_seconds)
        except TimeoutError:
            # The thread cannot be interrupted. Hold the permit and delay the
            # retry until it exits so no two conversions of this job overlap.
            logger.warning(
                "Conversion timed out, waiting for converter thread",
                extra={"job_id": job.job_id, "timeout_seconds": self.convert_timeout_seconds},
            )
            await asyncio.gather(call, return_exceptions=True)
            raise TimeoutError(
                f"conversion timed out after {self.convert_timeout_seconds}s"
            ) from None

    async def process(self, job: ExportJob) -> ExportJob:
        """
        Run one processing attempt.

        Args:
            job: The dequeued job. Owned by this call until it returns.

        Returns:
            The job's state at the end of the attempt, as reported to the
            observer (COMPLETE or FAILED).
        """
        logger.info(
            "Processing job",
            extra={
                "job_id": job.job_id,
                "document_id": job.document_id,
                "retry_count": job.retry_count,
            },
        )

        with self._tracer.start_as_current_span(SPAN_PROCESS_JOB) as span:
            span.set_attribute("job_id", job.job_id)
            span.set_attribute("document_id", job.document_id)
            span.set_attribute("retry_count", job.retry_count)

            job.start_processing()
            await self._publish_status(job)

            try:
                await self._convert(job)
            except Exception as e:
                await self._handle_failure(job, describe_error(e))
            else:
                job.mark_complete()
                await self._publish_status(job)
                logger.info(
                    "Job completed",
                    extra={
                        "job_id": job.job_id,
                        "duration_ms": job.processing_duration_ms(),
                    },
                )

            span.set_attribute("status", job.status.value)

        self._notify(job)
        return job

    async def _handle_failure(self, job: ExportJob, error_msg: str) -> None:
        logger.error(
            "Job failed",
            extra={"job_id": job.job_id, "error": error_msg},
        )
        job.mark_failed(error_msg)

        # retry_job mutates its argument; keep this attempt's FAILED state
        # for the observer.
        retried = job.model_copy(deep=True)
        try:
            requeued = await self.queue.retry_job(retried)
        except QueueError as e:
            logger.error(
                f"Failed to retry job: {e}",
                extra={"job_id": job.job_id},
            )
            return

        if requeued:
            logger.info(
                "Job re-queued for retry",
                extra={"job_id": job.job_id, "retry_count": retried.retry_count},
            )
        else:
            logger.warning(
                "Job failed permanently, max retries exceeded",
                extra={"job_id": job.job_id, "retry_count": retried.retry_count},
            )

    def _notify(self, job: ExportJob) -> None:
        try:
            self.observer.on_job_finished(job)
        except Exception:
            logger.exception(
                "Observer raised while recording job",
                extra={"job_id": job.job_id},
            )
