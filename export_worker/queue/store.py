"""
Queue store implementations.

This module provides the QueueStore interface the job queue relies on and
two implementations of it:
- RedisQueueStore: production store over redis.asyncio (lists + SET EX slots)
- InMemoryQueueStore: single-process store for tests and local development

The store knows nothing about jobs; it moves opaque payloads between
FIFO lists and expiring keyed slots.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError


class StoreError(Exception):
    """Raised when the backing store cannot be reached or rejects a command."""

    pass


class QueueStore(ABC):
    """Abstract interface for the durable queue store.

    Implementations must be safe for concurrent use by every dispatcher
    and processor task of the process.
    """

    @abstractmethod
    async def push_back(self, queue_key: str, value: str) -> None:
        """Append a value to the tail of a list."""
        ...

    @abstractmethod
    async def pop_front_blocking(self, queue_key: str, timeout: float) -> str | bytes | None:
        """Remove and return the head of a list.

        Waits up to ``timeout`` seconds for an entry; returns None when
        none arrived in time. Values come back exactly as stored, as bytes
        when the backend does not decode them.
        """
        ...

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        """Upsert a keyed slot that expires after ``ttl_seconds``."""
        ...

    @abstractmethod
    async def get(self, key: str) -> str | bytes | None:
        """Return the current slot value, or None if absent or expired."""
        ...

    @abstractmethod
    async def length(self, queue_key: str) -> int:
        """Approximate number of entries in a list."""
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


class RedisQueueStore(QueueStore):
    """Queue store backed by Redis.

    Lists use RPUSH/BLPOP for FIFO order, slots use SET with EX.
    Responses are returned undecoded; decoding is left to the caller so a
    payload that is not UTF-8 can still be popped and quarantined.
    A single redis.asyncio client is shared by all tasks; its connection
    pool hands each concurrent command its own connection, so a blocking
    BLPOP never stalls status writes.

    Example:
        ```python
        store = RedisQueueStore.from_url("redis://localhost:6379/0")
        await store.push_back("queue", "payload")
        value = await store.pop_front_blocking("queue", timeout=5.0)
        ```
    """

    def __init__(self, client: Any):  # redis.Redis
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisQueueStore:
        """Create a store from a Redis connection URL."""
        client = redis.from_url(url, **kwargs)
        return cls(client)

    async def push_back(self, queue_key: str, value: str) -> None:
        try:
            await self._client.rpush(queue_key, value)
        except RedisError as e:
            raise StoreError(f"RPUSH {queue_key} failed: {e}") from e

    async def pop_front_blocking(self, queue_key: str, timeout: float) -> str | bytes | None:
        # BLPOP treats 0 as "block forever"
        timeout = max(timeout, 0.01)
        try:
            result = await self._client.blpop([queue_key], timeout=timeout)
        except RedisError as e:
            raise StoreError(f"BLPOP {queue_key} failed: {e}") from e

        if result is None:
            return None

        _key, value = result
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise StoreError(f"SET {key} failed: {e}") from e

    async def get(self, key: str) -> str | bytes | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise StoreError(f"GET {key} failed: {e}") from e

    async def length(self, queue_key: str) -> int:
        try:
            return int(await self._client.llen(queue_key))
        except RedisError as e:
            raise StoreError(f"LLEN {queue_key} failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryQueueStore(QueueStore):
    """In-memory queue store for testing and development.

    Same semantics as RedisQueueStore within a single process.
    Slots expire lazily when read.
    """

    def __init__(self) -> None:
        self._lists: dict[str, deque[str]] = defaultdict(deque)
        self._slots: dict[str, tuple[str, float]] = {}
        self._changed = asyncio.Condition()

    async def push_back(self, queue_key: str, value: str) -> None:
        async with self._changed:
            self._lists[queue_key].append(value)
            self._changed.notify_all()

    async def pop_front_blocking(self, queue_key: str, timeout: float) -> str | None:
        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: bool(self._lists[queue_key])),
                    timeout=timeout,
                )
            except TimeoutError:
                return None
            return self._lists[queue_key].popleft()

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: float) -> None:
        self._slots[key] = (value, time.monotonic() + ttl_seconds)

    async def get(self, key: str) -> str | None:
        entry = self._slots.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._slots[key]
            return None
        return value

    async def length(self, queue_key: str) -> int:
        return len(self._lists[queue_key])

    async def ping(self) -> bool:
        return True

    def entries(self, queue_key: str) -> list[str]:
        """Snapshot of a list, head first."""
        return list(self._lists[queue_key])
