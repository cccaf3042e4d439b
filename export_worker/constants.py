"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Export job lifecycle states.

    State transitions:
    - QUEUED -> PROCESSING (dequeued by a worker)
    - PROCESSING -> COMPLETE (conversion succeeded)
    - PROCESSING -> FAILED (conversion failed)
    - FAILED -> QUEUED (retry, while retry_count < MAX_RETRIES)
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


# Redis keys
QUEUE_KEY = "wiretuner:export:pdf:queue"
STATUS_KEY_PREFIX = "wiretuner:export:pdf:status"
DEAD_LETTER_KEY = "wiretuner:export:pdf:dead"

# Default values
MAX_RETRIES = 3
STATUS_TTL_SECONDS = 86400  # 24 hours
DEQUEUE_TIMEOUT_SECONDS = 5.0
ERROR_BACKOFF_SECONDS = 5.0
HEARTBEAT_EVERY = 10
SLOW_EXPORT_THRESHOLD_MS = 5000
MAX_RETRIES_EXCEEDED = "max retries exceeded"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "export_queue_depth"
METRIC_JOBS_SUBMITTED = "export_jobs_submitted_total"
METRIC_JOBS_FINISHED = "export_jobs_finished_total"
METRIC_JOB_DURATION = "export_job_duration_seconds"
METRIC_JOB_RETRIES = "export_job_retries_total"
METRIC_HEARTBEATS = "export_worker_heartbeats_total"
METRIC_DEAD_LETTERED = "export_jobs_dead_lettered_total"

# Trace span names
SPAN_PROCESS_JOB = "process_export_job"
SPAN_JOB_FINISHED = "pdf_export_job"
SPAN_HEARTBEAT = "worker_heartbeat"
