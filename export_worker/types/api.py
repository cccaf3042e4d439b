"""
API request and response type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from export_worker.constants import JobStatus
from export_worker.types.job import ExportJob, JobMetadata


class CreateExportRequest(BaseModel):
    """Request body for submitting a PDF export."""

    document_id: str = Field(..., min_length=1, description="Source document identifier")
    svg_content: str = Field(..., min_length=1, description="SVG markup to convert")
    output_path: str = Field(..., min_length=1, description="Destination path of the PDF")
    metadata: JobMetadata = Field(
        default_factory=JobMetadata, description="Scope and versioning fields"
    )


class CreateExportResponse(BaseModel):
    """Response body after queueing an export."""

    job_id: str
    status: JobStatus
    created_at: datetime
    message: str = "Export job queued"


class ExportStatusResponse(BaseModel):
    """Status of an export job as last written by the worker."""

    job_id: str
    document_id: str
    output_path: str
    status: JobStatus
    retry_count: int
    created_at: datetime
    updated_at: datetime
    error: str | None
    duration_ms: float | None
    terminal: bool = Field(description="No further attempts will be made")

    @classmethod
    def from_job(cls, job: ExportJob) -> "ExportStatusResponse":
        return cls(
            job_id=job.job_id,
            document_id=job.document_id,
            output_path=job.output_path,
            status=job.status,
            retry_count=job.retry_count,
            created_at=job.created_at,
            updated_at=job.updated_at,
            error=job.error,
            duration_ms=job.processing_duration_ms(),
            terminal=job.is_terminal,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    queue_store: str
    queue_length: int | None
    timestamp: datetime

