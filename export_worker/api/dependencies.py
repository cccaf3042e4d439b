"""
FastAPI dependencies resolving shared objects from application state.
"""

from fastapi import Request

from export_worker.config import Settings
from export_worker.observability.metrics import MetricsCollector
from export_worker.queue.client import JobQueue


def get_queue(request: Request) -> JobQueue:
    """Queue client created by the application lifespan."""
    return request.app.state.queue


def get_metrics(request: Request) -> MetricsCollector:
    """Metrics collector owned by the application."""
    return request.app.state.metrics


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings
