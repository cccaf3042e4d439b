"""
API routes module.
"""

from export_worker.api.routes.exports import router as exports_router
from export_worker.api.routes.health import router as health_router

__all__ = ["exports_router", "health_router"]
