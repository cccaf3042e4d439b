"""
Export job routes.

Producers submit exports here; clients poll the status endpoint until the
job reaches a terminal state.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from export_worker.api.dependencies import get_app_settings, get_metrics, get_queue
from export_worker.config import Settings
from export_worker.constants import API_V1_PREFIX
from export_worker.observability.metrics import MetricsCollector
from export_worker.queue.client import JobQueue, QueueError
from export_worker.types.api import (
    CreateExportRequest,
    CreateExportResponse,
    ExportStatusResponse,
)
from export_worker.types.job import ExportJob
from export_worker.worker.converter import ConversionError, resolve_output_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/exports", tags=["Exports"])


@router.post(
    "",
    response_model=CreateExportResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a PDF export",
    description="Queue an SVG document for conversion to PDF.",
)
async def create_export(
    request: CreateExportRequest,
    queue: JobQueue = Depends(get_queue),
    metrics: MetricsCollector = Depends(get_metrics),
    settings: Settings = Depends(get_app_settings),
) -> CreateExportResponse:
    """
    Create and enqueue an export job.

    Args:
        request: Export request.
        queue: Queue client.
        metrics: Metrics collector.
        settings: Application settings.

    Returns:
        CreateExportResponse with the new job id.

    Raises:
        HTTPException: 422 if output_path leaves the export root, 503 if
            the queue store is unavailable.
    """
    try:
        resolve_output_path(request.output_path, settings.export_root)
    except ConversionError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e),
        ) from e

    job = ExportJob.create(
        document_id=request.document_id,
        svg_content=request.svg_content,
        output_path=request.output_path,
        metadata=request.metadata,
    )

    try:
        await queue.enqueue(job)
    except QueueError as e:
        logger.error(f"Failed to enqueue export: {e}", extra={"job_id": job.job_id})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Export queue unavailable",
        ) from e

    metrics.record_job_submitted()

    return CreateExportResponse(
        job_id=job.job_id,
        status=job.status,
        created_at=job.created_at,
    )


@router.get(
    "/{job_id}",
    response_model=ExportStatusResponse,
    summary="Get export status",
    description="Read the last status written for an export job.",
)
async def get_export_status(
    job_id: str,
    queue: JobQueue = Depends(get_queue),
) -> ExportStatusResponse:
    """
    Get the status of an export job.

    A 404 is ambiguous: the status may have expired, or the job never existed.

    Args:
        job_id: The job identifier.
        queue: Queue client.

    Returns:
        ExportStatusResponse with the job's last known state.
    """
    try:
        job = await queue.get_status(job_id)
    except QueueError as e:
        logger.error(f"Failed to read export status: {e}", extra={"job_id": job_id})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Export queue unavailable",
        ) from e

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Export job {job_id} not found",
        )

    return ExportStatusResponse.from_job(job)
