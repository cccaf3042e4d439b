"""
Unit tests for the queue stores.
"""

import asyncio

import pytest
from fakeredis import FakeServer

from export_worker.queue.store import InMemoryQueueStore, RedisQueueStore, StoreError


class TestInMemoryQueueStore:
    """Tests for InMemoryQueueStore."""

    async def test_fifo_order(self, store: InMemoryQueueStore):
        for value in ("a", "b", "c"):
            await store.push_back("q", value)

        popped = [await store.pop_front_blocking("q", timeout=0.05) for _ in range(3)]

        assert popped == ["a", "b", "c"]

    async def test_pop_times_out_with_none(self, store: InMemoryQueueStore):
        assert await store.pop_front_blocking("q", timeout=0.05) is None

    async def test_blocked_pop_wakes_on_push(self, store: InMemoryQueueStore):
        """Test a waiting pop receives an entry pushed later."""
        waiter = asyncio.create_task(store.pop_front_blocking("q", timeout=2.0))
        await asyncio.sleep(0.02)

        await store.push_back("q", "late")

        assert await waiter == "late"

    async def test_lists_are_independent(self, store: InMemoryQueueStore):
        await store.push_back("q1", "x")

        assert await store.pop_front_blocking("q2", timeout=0.02) is None
        assert await store.length("q1") == 1

    async def test_length(self, store: InMemoryQueueStore):
        assert await store.length("q") == 0
        await store.push_back("q", "a")
        await store.push_back("q", "b")

        assert await store.length("q") == 2
        assert store.entries("q") == ["a", "b"]

    async def test_slot_upsert_and_get(self, store: InMemoryQueueStore):
        await store.set_with_expiry("k", "v1", 60)
        await store.set_with_expiry("k", "v2", 60)

        assert await store.get("k") == "v2"

    async def test_slot_expires(self, store: InMemoryQueueStore):
        await store.set_with_expiry("k", "v", 0.05)
        await asyncio.sleep(0.1)

        assert await store.get("k") is None

    async def test_missing_slot(self, store: InMemoryQueueStore):
        assert await store.get("missing") is None

    async def test_ping(self, store: InMemoryQueueStore):
        assert await store.ping() is True


class TestRedisQueueStore:
    """Tests for RedisQueueStore over fakeredis."""

    async def test_fifo_order(self, redis_store: RedisQueueStore):
        for value in ("a", "b", "c"):
            await redis_store.push_back("q", value)

        popped = [await redis_store.pop_front_blocking("q", timeout=0.05) for _ in range(3)]

        assert popped == [b"a", b"b", b"c"]

    async def test_values_are_returned_undecoded(self, redis_store: RedisQueueStore):
        """Test bytes that are not UTF-8 still come back from the store."""
        await redis_store._client.rpush("q", b"\xff\xfe not utf8")

        assert await redis_store.pop_front_blocking("q", timeout=0.05) == b"\xff\xfe not utf8"

    async def test_pop_times_out_with_none(self, redis_store: RedisQueueStore):
        assert await redis_store.pop_front_blocking("q", timeout=0.05) is None

    async def test_zero_timeout_does_not_block_forever(self, redis_store: RedisQueueStore):
        """Test a zero timeout is raised to a short wait instead of BLPOP's infinite block."""
        result = await asyncio.wait_for(
            redis_store.pop_front_blocking("q", timeout=0), timeout=2.0
        )

        assert result is None

    async def test_slot_with_expiry(self, redis_store: RedisQueueStore):
        await redis_store.set_with_expiry("k", "v", 60)

        assert await redis_store.get("k") == b"v"
        assert 0 < await redis_store._client.ttl("k") <= 60

    async def test_missing_slot(self, redis_store: RedisQueueStore):
        assert await redis_store.get("missing") is None

    async def test_length(self, redis_store: RedisQueueStore):
        await redis_store.push_back("q", "a")
        await redis_store.push_back("q", "b")

        assert await redis_store.length("q") == 2

    async def test_ping(self, redis_store: RedisQueueStore):
        assert await redis_store.ping() is True

    @pytest.mark.parametrize(
        "command, args",
        [
            ("push_back", ("q", "v")),
            ("pop_front_blocking", ("q", 0.05)),
            ("set_with_expiry", ("k", "v", 60)),
            ("get", ("k",)),
            ("length", ("q",)),
        ],
    )
    async def test_connection_errors_become_store_errors(
        self, redis_server: FakeServer, redis_store: RedisQueueStore, command, args
    ):
        redis_server.connected = False

        with pytest.raises(StoreError):
            await getattr(redis_store, command)(*args)

    async def test_ping_when_disconnected(self, redis_server: FakeServer, redis_store: RedisQueueStore):
        redis_server.connected = False

        assert await redis_store.ping() is False
