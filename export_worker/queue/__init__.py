"""
Queue module.
Contains the queue store implementations and the job queue client.
"""

from export_worker.queue.client import JobDeserializationError, JobQueue, QueueError
from export_worker.queue.store import (
    InMemoryQueueStore,
    QueueStore,
    RedisQueueStore,
    StoreError,
)

__all__ = [
    "JobQueue",
    "QueueError",
    "JobDeserializationError",
    "QueueStore",
    "RedisQueueStore",
    "InMemoryQueueStore",
    "StoreError",
]
