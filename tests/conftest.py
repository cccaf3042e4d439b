"""
Pytest configuration and shared fixtures.
"""

import asyncio
import threading
import time
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from export_worker.api.dependencies import get_queue
from export_worker.api.main import create_app
from export_worker.config import Settings
from export_worker.observability.observer import JobObserver
from export_worker.queue.client import JobQueue
from export_worker.queue.store import InMemoryQueueStore, RedisQueueStore
from export_worker.types.job import ExportJob, JobMetadata

SAMPLE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="100">'
    '<rect x="10" y="10" width="80" height="80" fill="blue"/>'
    "</svg>"
)


class RecordingObserver(JobObserver):
    """Observer that keeps every event for assertions."""

    def __init__(self) -> None:
        self.finished: list[ExportJob] = []
        self.heartbeats: list[int] = []
        self.dead_letters: list[str] = []

    def on_job_finished(self, job: ExportJob) -> None:
        self.finished.append(job.model_copy(deep=True))

    def on_heartbeat(self, queue_length: int) -> None:
        self.heartbeats.append(queue_length)

    def on_dead_lettered(self, reason: str) -> None:
        self.dead_letters.append(reason)


class FakeConverter:
    """
    Converter double.

    Fails the first ``fail_times`` calls, sleeps ``delay`` seconds per call
    and tracks how many calls overlap.
    """

    def __init__(self, fail_times: int = 0, delay: float = 0.0, error: str = "boom"):
        self.fail_times = fail_times
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def convert(self, svg_content: str, output_path: str) -> None:
        with self._lock:
            self.calls.append((svg_content, output_path))
            attempt = len(self.calls)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if attempt <= self.fail_times:
                raise RuntimeError(self.error)
        finally:
            with self._lock:
                self.active -= 1


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll predicate until it holds or fail the test after timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        queue_backend="memory",
        log_level="DEBUG",
        log_format="console",
        dequeue_timeout_seconds=0.05,
        worker_error_backoff_seconds=0.01,
        worker_concurrency=2,
        heartbeat_every=1,
        tracing_enabled=False,
        metrics_enabled=False,
        export_root="/tmp/pdf-exports",
    )


@pytest.fixture
def store() -> InMemoryQueueStore:
    """Create an empty in-memory queue store."""
    return InMemoryQueueStore()


@pytest.fixture
def redis_server() -> FakeServer:
    """Isolated fake Redis server."""
    return FakeServer()


@pytest_asyncio.fixture
async def redis_store(redis_server: FakeServer) -> AsyncGenerator[RedisQueueStore]:
    """Redis queue store over fakeredis."""
    store = RedisQueueStore(FakeRedis(server=redis_server))
    yield store
    await store.close()


@pytest.fixture
def queue(store: InMemoryQueueStore) -> JobQueue:
    """Create a queue client over the in-memory store."""
    return JobQueue(store, dequeue_timeout_seconds=0.05)


@pytest.fixture
def make_job() -> Callable[..., ExportJob]:
    """Factory for export jobs."""

    def _make_job(document_id: str = "doc-123", **overrides: Any) -> ExportJob:
        return ExportJob.create(
            document_id=document_id,
            svg_content=overrides.pop("svg_content", SAMPLE_SVG),
            output_path=overrides.pop("output_path", f"/tmp/{document_id}.pdf"),
            metadata=overrides.pop(
                "metadata",
                JobMetadata(
                    artboard_ids=["ab-1"],
                    export_scope="current",
                    client_version="0.1.0",
                ),
            ),
        )

    return _make_job


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest_asyncio.fixture
async def app(test_settings: Settings, queue: JobQueue) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app wired to the in-memory queue."""
    app = create_app(test_settings)
    app.dependency_overrides[get_queue] = lambda: queue
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
