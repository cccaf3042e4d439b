"""
Type definitions for the export worker.
Contains the job record and the HTTP request/response models.
"""

from export_worker.types.api import (
    CreateExportRequest,
    CreateExportResponse,
    ExportStatusResponse,
    HealthResponse,
)
from export_worker.types.job import ExportJob, JobMetadata

__all__ = [
    # API types
    "CreateExportRequest",
    "CreateExportResponse",
    "ExportStatusResponse",
    "HealthResponse",
    # Job types
    "ExportJob",
    "JobMetadata",
]
