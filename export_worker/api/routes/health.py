"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from export_worker import __version__
from export_worker.api.dependencies import get_metrics, get_queue
from export_worker.observability.metrics import MetricsCollector
from export_worker.queue.client import JobQueue, QueueError
from export_worker.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and queue store connection.",
)
async def health_check(queue: JobQueue = Depends(get_queue)) -> HealthResponse:
    """
    Perform a health check.

    Pings the queue store and reports the current queue length.

    Args:
        queue: Queue client.

    Returns:
        HealthResponse with service status.
    """
    store_status = "healthy" if await queue.store.ping() else "unhealthy"

    queue_length = None
    if store_status == "healthy":
        try:
            queue_length = await queue.queue_length()
        except QueueError:
            store_status = "unhealthy"

    return HealthResponse(
        status="healthy" if store_status == "healthy" else "degraded",
        version=__version__,
        queue_store=store_status,
        queue_length=queue_length,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics(collector: MetricsCollector = Depends(get_metrics)) -> Response:
    """
    Expose Prometheus metrics.

    Returns:
        Prometheus-formatted metrics.
    """
    return Response(
        content=collector.get_metrics(),
        media_type=collector.get_content_type(),
    )
