"""
Job queue client for PDF export tasks.

Wraps a QueueStore with job keying and JSON serialization:
- Jobs wait in a single FIFO list
- Each job has a status slot (<prefix>:<job_id>) that pollers read and that
  expires after the retention window unless rewritten
- Entries that cannot be parsed are moved to a dead-letter list

Status slots are advisory. Control flow never depends on them, so a failed
status write is reported to the caller but never rolls back a queue push.

Usage:
    from export_worker.queue import JobQueue, RedisQueueStore

    queue = JobQueue(RedisQueueStore.from_url("redis://localhost:6379/0"))
    await queue.enqueue(job)
    job = await queue.dequeue()  # None after the dequeue timeout
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from export_worker.constants import (
    DEAD_LETTER_KEY,
    DEQUEUE_TIMEOUT_SECONDS,
    MAX_RETRIES,
    QUEUE_KEY,
    STATUS_KEY_PREFIX,
    STATUS_TTL_SECONDS,
)
from export_worker.queue.store import QueueStore, StoreError
from export_worker.types.job import ExportJob, utcnow

logger = logging.getLogger(__name__)


class QueueError(Exception):
    """Base exception for job queue operations."""

    pass


class JobDeserializationError(QueueError):
    """Raised when a queue entry is not a valid job record.

    The entry has already been removed from the queue; ``raw`` holds it so
    the caller can quarantine it.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class JobQueue:
    """
    Queue client for PDF export jobs.

    Provides:
    - enqueue / blocking dequeue over the shared FIFO list
    - status slot writes and reads for external pollers
    - retry re-enqueue up to the retry ceiling
    - dead-letter quarantine for corrupt entries
    """

    def __init__(
        self,
        store: QueueStore,
        queue_key: str = QUEUE_KEY,
        status_prefix: str = STATUS_KEY_PREFIX,
        dead_letter_key: str = DEAD_LETTER_KEY,
        status_ttl_seconds: int = STATUS_TTL_SECONDS,
        dequeue_timeout_seconds: float = DEQUEUE_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
    ):
        """
        Initialize the queue client.

        Args:
            store: The backing queue store, shared by all tasks.
            queue_key: Name of the FIFO list holding pending jobs.
            status_prefix: Prefix of the per-job status slot keys.
            dead_letter_key: Name of the list receiving corrupt entries.
            status_ttl_seconds: Retention window of status slots.
            dequeue_timeout_seconds: How long dequeue() waits for a job.
            max_retries: Retry ceiling applied by retry_job().
        """
        self.store = store
        self.queue_key = queue_key
        self.status_prefix = status_prefix
        self.dead_letter_key = dead_letter_key
        self.status_ttl_seconds = status_ttl_seconds
        self.dequeue_timeout_seconds = dequeue_timeout_seconds
        self.max_retries = max_retries

    def _status_key(self, job_id: str) -> str:
        return f"{self.status_prefix}:{job_id}"

    @staticmethod
    def _decode(raw: str | bytes) -> str:
        if isinstance(raw, str):
            return raw
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise JobDeserializationError(
                f"Entry is not valid UTF-8: {e.reason} at byte {e.start}",
                raw=raw.decode("utf-8", errors="backslashreplace"),
            ) from e

    async def enqueue(self, job: ExportJob) -> None:
        """
        Enqueue a job.

        The job is appended to the queue list, then its status slot is
        written with the retention TTL. If the status write fails the job
        stays queued and the error is raised.

        Args:
            job: The export job to enqueue.

        Raises:
            QueueError: If either store write fails.
        """
        job_json = job.to_json()

        try:
            await self.store.push_back(self.queue_key, job_json)
        except StoreError as e:
            raise QueueError(f"Failed to push job to queue: {e}") from e

        try:
            await self.store.set_with_expiry(
                self._status_key(job.job_id), job_json, self.status_ttl_seconds
            )
        except StoreError as e:
            raise QueueError(f"Failed to set job status: {e}") from e

        logger.info(
            "Enqueued job",
            extra={
                "job_id": job.job_id,
                "document_id": job.document_id,
                "retry_count": job.retry_count,
            },
        )

    async def dequeue(self) -> ExportJob | None:
        """
        Dequeue the next job, waiting up to the dequeue timeout.

        Returns:
            The job, or None if the queue stayed empty for the whole timeout.

        Raises:
            JobDeserializationError: If the popped entry is not a valid job.
            QueueError: If the store fails.
        """
        try:
            raw = await self.store.pop_front_blocking(
                self.queue_key, self.dequeue_timeout_seconds
            )
        except StoreError as e:
            raise QueueError(f"Failed to pop job from queue: {e}") from e

        if raw is None:
            return None

        raw = self._decode(raw)
        try:
            job = ExportJob.from_json(raw)
        except ValidationError as e:
            raise JobDeserializationError(
                f"Failed to deserialize job: {e.error_count()} validation error(s)",
                raw=raw,
            ) from e

        logger.debug("Dequeued job", extra={"job_id": job.job_id})
        return job

    async def update_status(self, job: ExportJob) -> None:
        """
        Overwrite the job's status slot with its current state.

        Also refreshes the TTL. Safe to call repeatedly.

        Raises:
            QueueError: If the store write fails.
        """
        try:
            await self.store.set_with_expiry(
                self._status_key(job.job_id), job.to_json(), self.status_ttl_seconds
            )
        except StoreError as e:
            raise QueueError(f"Failed to update job status: {e}") from e

        logger.debug(
            "Updated job status",
            extra={"job_id": job.job_id, "status": job.status.value},
        )

    async def get_status(self, job_id: str) -> ExportJob | None:
        """
        Get the last written state of a job.

        None means the slot expired or the job never existed; callers
        cannot tell the two apart.

        Raises:
            JobDeserializationError: If the slot holds an invalid record.
            QueueError: If the store read fails.
        """
        try:
            raw = await self.store.get(self._status_key(job_id))
        except StoreError as e:
            raise QueueError(f"Failed to get job status: {e}") from e

        if raw is None:
            return None

        raw = self._decode(raw)
        try:
            return ExportJob.from_json(raw)
        except ValidationError as e:
            raise JobDeserializationError(
                f"Failed to deserialize job status: {e.error_count()} validation error(s)",
                raw=raw,
            ) from e

    async def retry_job(self, job: ExportJob) -> bool:
        """
        Re-enqueue a failed job if the retry ceiling allows it.

        The job is mutated: on acceptance it is QUEUED with retry_count
        incremented; on refusal it is permanently FAILED and that state is
        written to its status slot.

        Returns:
            True if a retry was enqueued, False if retries are exhausted.

        Raises:
            QueueError: If the re-enqueue or status write fails.
        """
        if job.retry(self.max_retries):
            await self.enqueue(job)
            return True

        await self.update_status(job)
        logger.error(
            "Job failed after max retries",
            extra={"job_id": job.job_id, "error": job.error},
        )
        return False

    async def queue_length(self) -> int:
        """Return the current (advisory) queue length."""
        try:
            return await self.store.length(self.queue_key)
        except StoreError as e:
            raise QueueError(f"Failed to get queue length: {e}") from e

    async def quarantine(self, raw: str, reason: str) -> None:
        """
        Move an unparseable entry to the dead-letter list.

        Args:
            raw: The entry exactly as it was popped.
            reason: Why it was rejected.

        Raises:
            QueueError: If the store write fails.
        """
        envelope = json.dumps(
            {
                "raw": raw,
                "reason": reason,
                "quarantined_at": utcnow().isoformat(),
            }
        )
        try:
            await self.store.push_back(self.dead_letter_key, envelope)
        except StoreError as e:
            raise QueueError(f"Failed to quarantine entry: {e}") from e

        logger.warning(
            "Quarantined corrupt queue entry",
            extra={"dead_letter_key": self.dead_letter_key, "reason": reason},
        )

    async def dead_letter_length(self) -> int:
        """Return the number of quarantined entries."""
        try:
            return await self.store.length(self.dead_letter_key)
        except StoreError as e:
            raise QueueError(f"Failed to get dead-letter length: {e}") from e
