"""
Export job record and its lifecycle state machine.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from export_worker.constants import MAX_RETRIES, MAX_RETRIES_EXCEEDED, JobStatus


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class JobMetadata(BaseModel):
    """
    Scope and versioning details attached by the producer.

    Never touched by the worker; passed through to telemetry unchanged.
    Unknown keys are kept so newer producers can add fields freely.
    """

    model_config = ConfigDict(extra="allow")

    artboard_ids: list[str] = Field(default_factory=list)
    export_scope: str = "all"
    client_version: str = "unknown"
    user_id: str | None = None


class ExportJob(BaseModel):
    """
    A single PDF export request and its lifecycle state.

    The same record is written to the queue list and to the status slot.
    A retried job keeps its job_id and accumulates retry_count.
    """

    job_id: str = Field(default_factory=lambda: str(uuid4()))
    document_id: str
    svg_content: str
    output_path: str
    metadata: JobMetadata = Field(default_factory=JobMetadata)
    status: JobStatus = JobStatus.QUEUED
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    error: str | None = None

    @classmethod
    def create(
        cls,
        document_id: str,
        svg_content: str,
        output_path: str,
        metadata: JobMetadata | dict[str, Any] | None = None,
    ) -> "ExportJob":
        """
        Create a fresh QUEUED job with a new identifier.

        Args:
            document_id: Identifier of the source document.
            svg_content: SVG markup to convert.
            output_path: Destination path of the generated PDF.
            metadata: Producer supplied scope/versioning fields.

        Returns:
            The new job.
        """
        if metadata is None:
            metadata = JobMetadata()
        elif isinstance(metadata, dict):
            metadata = JobMetadata.model_validate(metadata)

        now = utcnow()
        return cls(
            document_id=document_id,
            svg_content=svg_content,
            output_path=output_path,
            metadata=metadata,
            created_at=now,
            updated_at=now,
        )

    def _touch(self) -> None:
        # updated_at must never fall behind created_at, even with clock skew
        # between the producer and this worker.
        self.updated_at = max(utcnow(), self.created_at)

    def start_processing(self) -> None:
        """QUEUED -> PROCESSING."""
        self.status = JobStatus.PROCESSING
        self._touch()

    def mark_complete(self) -> None:
        """Move to COMPLETE and clear any error left by earlier attempts."""
        self.status = JobStatus.COMPLETE
        self.error = None
        self._touch()

    def mark_failed(self, error: str) -> None:
        """Move to FAILED with a human readable reason."""
        self.status = JobStatus.FAILED
        self.error = error
        self._touch()

    def retry(self, max_retries: int = MAX_RETRIES) -> bool:
        """
        Put the job back to QUEUED if the retry ceiling allows it.

        Args:
            max_retries: The retry ceiling.

        Returns:
            True if the retry was accepted, False if the job is now
            permanently FAILED.
        """
        if self.retry_count < max_retries:
            self.retry_count += 1
            self.status = JobStatus.QUEUED
            self._touch()
            return True

        self.mark_failed(MAX_RETRIES_EXCEEDED)
        return False

    def processing_duration(self) -> timedelta | None:
        """Time from creation to the terminal transition, once finished."""
        if self.status in (JobStatus.COMPLETE, JobStatus.FAILED):
            return self.updated_at - self.created_at
        return None

    def processing_duration_ms(self) -> float | None:
        duration = self.processing_duration()
        if duration is None:
            return None
        return duration.total_seconds() * 1000

    @property
    def is_terminal(self) -> bool:
        """Check whether no further processing will happen for this job."""
        if self.status == JobStatus.COMPLETE:
            return True
        return self.status == JobStatus.FAILED and self.error == MAX_RETRIES_EXCEEDED

    def to_json(self) -> str:
        """Serialize the full record for the queue and status slot."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "ExportJob":
        """
        Deserialize a record written by to_json().

        Raises:
            pydantic.ValidationError: If the payload is not a valid job.
        """
        return cls.model_validate_json(data)
