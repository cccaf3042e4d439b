"""
Unit tests for the job processor.
"""

import asyncio

import pytest

from export_worker.constants import MAX_RETRIES_EXCEEDED, JobStatus
from export_worker.queue.client import JobQueue, QueueError
from export_worker.worker.converter import ConversionError
from export_worker.worker.processor import JobProcessor, describe_error
from tests.conftest import FakeConverter, RecordingObserver


class BrokenStatusQueue(JobQueue):
    """Queue whose status writes always fail."""

    async def update_status(self, job) -> None:
        raise QueueError("Failed to update job status: connection reset")


class ExplodingObserver(RecordingObserver):
    def on_job_finished(self, job) -> None:
        raise RuntimeError("telemetry down")


class TestJobProcessor:
    """Tests for JobProcessor.process."""

    async def test_success(self, queue: JobQueue, make_job, observer: RecordingObserver):
        """Test a successful conversion ends COMPLETE and is persisted."""
        converter = FakeConverter()
        processor = JobProcessor(queue, converter, observer)
        job = make_job()

        result = await processor.process(job)

        assert result.status == JobStatus.COMPLETE
        assert converter.calls == [(job.svg_content, job.output_path)]

        status = await queue.get_status(job.job_id)
        assert status.status == JobStatus.COMPLETE
        assert status.error is None
        assert status.processing_duration() is not None

        assert len(observer.finished) == 1
        assert observer.finished[0].status == JobStatus.COMPLETE

    async def test_failure_is_requeued(self, queue: JobQueue, make_job, observer: RecordingObserver):
        """Test a failed conversion is re-enqueued with an incremented retry count."""
        processor = JobProcessor(queue, FakeConverter(fail_times=1, error="bad svg"), observer)
        job = make_job()

        result = await processor.process(job)

        assert result.status == JobStatus.FAILED
        assert result.error == "bad svg"
        assert observer.finished[0].status == JobStatus.FAILED

        requeued = await queue.dequeue()
        assert requeued.job_id == job.job_id
        assert requeued.retry_count == 1
        assert requeued.status == JobStatus.QUEUED

    async def test_exhausted_retries(self, queue: JobQueue, make_job, observer: RecordingObserver):
        """Test a job failing every attempt ends permanently FAILED."""
        converter = FakeConverter(fail_times=100)
        processor = JobProcessor(queue, converter, observer)
        job = make_job()

        await processor.process(job)
        for _ in range(3):
            job = await queue.dequeue()
            await processor.process(job)

        assert len(converter.calls) == 4
        assert await queue.dequeue() is None

        status = await queue.get_status(job.job_id)
        assert status.status == JobStatus.FAILED
        assert status.retry_count == 3
        assert status.error == MAX_RETRIES_EXCEEDED

    async def test_succeeds_on_retry(self, queue: JobQueue, make_job, observer: RecordingObserver):
        processor = JobProcessor(queue, FakeConverter(fail_times=1), observer)

        await processor.process(make_job())
        retried = await queue.dequeue()
        result = await processor.process(retried)

        assert result.status == JobStatus.COMPLETE
        assert result.error is None
        assert result.retry_count == 1

    async def test_status_write_failures_do_not_abort(self, store, make_job, observer: RecordingObserver):
        """Test the conversion still runs when status writes fail."""
        queue = BrokenStatusQueue(store, dequeue_timeout_seconds=0.05)
        converter = FakeConverter()
        processor = JobProcessor(queue, converter, observer)

        result = await processor.process(make_job())

        assert result.status == JobStatus.COMPLETE
        assert len(converter.calls) == 1
        assert len(observer.finished) == 1

    async def test_retry_persist_failure_is_logged(self, store, make_job, observer: RecordingObserver):
        """Test a failing retry write does not escape the processor."""
        queue = BrokenStatusQueue(store, max_retries=0)
        processor = JobProcessor(queue, FakeConverter(fail_times=1), observer)

        result = await processor.process(make_job())

        assert result.status == JobStatus.FAILED
        assert len(observer.finished) == 1

    async def test_observer_errors_are_swallowed(self, queue: JobQueue, make_job):
        processor = JobProcessor(queue, FakeConverter(), ExplodingObserver())

        result = await processor.process(make_job())

        assert result.status == JobStatus.COMPLETE

    async def test_convert_timeout(self, queue: JobQueue, make_job, observer: RecordingObserver):
        """Test a slow conversion fails the attempt once the timeout expires."""
        converter = FakeConverter(delay=0.3)
        processor = JobProcessor(
            queue,
            converter,
            observer,
            convert_timeout_seconds=0.05,
        )

        result = await processor.process(make_job())

        assert result.status == JobStatus.FAILED
        assert result.error == "conversion timed out after 0.05s"
        assert (await queue.dequeue()).retry_count == 1

    async def test_timeout_waits_for_converter_before_retrying(
        self, queue: JobQueue, make_job, observer: RecordingObserver
    ):
        """Test the retry is only enqueued once the timed-out converter has exited."""
        converter = FakeConverter(delay=0.3)
        processor = JobProcessor(queue, converter, observer, convert_timeout_seconds=0.05)

        attempt = asyncio.create_task(processor.process(make_job()))
        await asyncio.sleep(0.15)

        assert not attempt.done()
        assert await queue.queue_length() == 0

        await attempt
        assert converter.active == 0
        assert await queue.queue_length() == 1


class TestDescribeError:
    """Tests for describe_error."""

    def test_single(self):
        assert describe_error(RuntimeError("boom")) == "boom"

    def test_chained(self):
        try:
            try:
                raise ValueError("unknown element <foo>")
            except ValueError as e:
                raise ConversionError("Failed to render SVG") from e
        except ConversionError as e:
            error = e

        assert describe_error(error) == "Failed to render SVG: unknown element <foo>"

    def test_empty_message_uses_type(self):
        assert describe_error(TimeoutError()) == "TimeoutError"

    @pytest.mark.parametrize("message", ["same", "x"])
    def test_duplicate_messages_collapsed(self, message):
        try:
            try:
                raise ValueError(message)
            except ValueError as e:
                raise RuntimeError(message) from e
        except RuntimeError as e:
            error = e

        assert describe_error(error) == message
