"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from export_worker import __version__
from export_worker.api.routes import exports_router, health_router
from export_worker.config import Settings, get_settings
from export_worker.observability.logging import setup_logging
from export_worker.observability.metrics import MetricsCollector
from export_worker.observability.tracing import (
    instrument_fastapi,
    setup_tracing,
    shutdown_tracing,
)
from export_worker.worker.main import create_queue, create_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Opens the queue store on startup and closes it on shutdown.
    """
    settings: Settings = app.state.settings

    setup_logging(settings)
    setup_tracing(settings)

    store = create_store(settings)
    app.state.queue = create_queue(store, settings)

    logger.info("Application started")

    yield

    await store.close()
    shutdown_tracing()
    logger.info("Application shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="PDF Export API",
        description="Submit SVG to PDF exports and poll their status",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.metrics = MetricsCollector()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(exports_router)

    if settings.tracing_enabled:
        instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
