"""Tests de los lock managers (local y Redis)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import LockError

from device_manager.config import DeviceManagerConfig
from device_manager.errors import LockTimeout
from device_manager.locks import (
    KeyedLockManager,
    RedisLockManager,
    asset_lock_key,
    get_lock_manager,
    ingest_lock_key,
)


# =============================================================================
# LOCK LOCAL
# =============================================================================

class TestKeyedLockManager:

    def test_keys(self):
        assert ingest_lock_key("DummyTemp-linked1") == "measure:ingest:DummyTemp-linked1"
        assert asset_lock_key("engine-ayse", "Container-linked1") == "asset:engine-ayse:Container-linked1"

    @pytest.mark.asyncio
    async def test_same_key_is_mutually_exclusive(self):
        locks = KeyedLockManager(timeout_seconds=5.0)
        active = 0
        max_active = 0

        async def body():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

        await asyncio.gather(*(locks.with_lock("k", body) for _ in range(5)))

        assert max_active == 1

    @pytest.mark.asyncio
    async def test_same_key_runs_in_arrival_order(self):
        locks = KeyedLockManager(timeout_seconds=5.0)
        order = []

        async def body(i):
            await asyncio.sleep(0)
            order.append(i)

        await asyncio.gather(*(locks.with_lock("k", lambda i=i: body(i)) for i in range(4)))

        assert order == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLockManager(timeout_seconds=5.0)
        both_inside = asyncio.Event()
        inside = 0

        async def body():
            nonlocal inside
            inside += 1
            if inside == 2:
                both_inside.set()
            await asyncio.wait_for(both_inside.wait(), timeout=1.0)

        await asyncio.gather(locks.with_lock("a", body), locks.with_lock("b", body))

        assert both_inside.is_set()

    @pytest.mark.asyncio
    async def test_propagates_result_and_releases(self):
        locks = KeyedLockManager()

        async def body():
            return 42

        assert await locks.with_lock("k", body) == 42
        assert locks.is_locked("k") is False
        assert locks.stats["active_keys"] == 0

    @pytest.mark.asyncio
    async def test_releases_on_error(self):
        locks = KeyedLockManager()

        async def body():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await locks.with_lock("k", body)

        assert locks.is_locked("k") is False
        assert await locks.with_lock("k", AsyncMock(return_value="ok")) == "ok"

    @pytest.mark.asyncio
    async def test_timeout_raises_lock_timeout(self):
        locks = KeyedLockManager(timeout_seconds=0.05)
        release = asyncio.Event()

        async def holder():
            async with locks.hold("k"):
                await release.wait()

        task = asyncio.create_task(holder())
        await asyncio.sleep(0.01)

        with pytest.raises(LockTimeout) as exc_info:
            async with locks.hold("k"):
                pass

        assert exc_info.value.key == "k"
        assert exc_info.value.retryable is True

        release.set()
        await task
        assert locks.stats["active_keys"] == 0

    @pytest.mark.asyncio
    async def test_acquire_finishing_at_timeout_is_released(self):
        locks = KeyedLockManager(timeout_seconds=0.05)

        async def late_wait(tasks, timeout=None):
            # El acquire termina pero el plazo se reporta vencido
            for task in tasks:
                await task
            return set(), set(tasks)

        with patch("device_manager.locks.local.asyncio.wait", late_wait):
            with pytest.raises(LockTimeout):
                async with locks.hold("k"):
                    pass

        assert locks.is_locked("k") is False
        assert locks.stats["active_keys"] == 0

        async with locks.hold("k"):
            assert locks.is_locked("k") is True

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_keep_lock(self):
        locks = KeyedLockManager(timeout_seconds=5.0)
        release = asyncio.Event()

        async def holder():
            async with locks.hold("k"):
                await release.wait()

        holder_task = asyncio.create_task(holder())
        await asyncio.sleep(0.01)

        waiter = asyncio.create_task(locks.with_lock("k", AsyncMock()))
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        await holder_task
        assert locks.is_locked("k") is False
        assert locks.stats["active_keys"] == 0


# =============================================================================
# LOCK REDIS (cliente mockeado)
# =============================================================================

def _redis_client(acquired=True, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock(side_effect=release_error)

    client = MagicMock()
    client.lock = MagicMock(return_value=lock)
    client.aclose = AsyncMock()
    return client, lock


class TestRedisLockManager:

    @pytest.mark.asyncio
    async def test_acquires_with_lease_and_releases(self):
        client, lock = _redis_client()
        locks = RedisLockManager(client, timeout_seconds=3.0, lease_seconds=15.0)

        async with locks.hold("measure:ingest:d1"):
            lock.release.assert_not_awaited()

        client.lock.assert_called_once_with(
            "dm:lock:measure:ingest:d1", timeout=15.0, blocking_timeout=3.0,
        )
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_acquired_raises_lock_timeout(self):
        client, lock = _redis_client(acquired=False)
        locks = RedisLockManager(client, timeout_seconds=0.1)

        with pytest.raises(LockTimeout):
            async with locks.hold("k"):
                pytest.fail("body must not run")

        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_lease_is_not_raised(self):
        client, lock = _redis_client(release_error=LockError("expired"))
        locks = RedisLockManager(client)

        result = await locks.with_lock("k", AsyncMock(return_value="done"))

        assert result == "done"
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_releases_on_body_error(self):
        client, lock = _redis_client()
        locks = RedisLockManager(client)

        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("body failed")

        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close(self):
        client, _ = _redis_client()
        await RedisLockManager(client).close()
        client.aclose.assert_awaited_once()


class TestGetLockManager:

    def test_local_backend(self):
        manager = get_lock_manager(DeviceManagerConfig(lock_backend="local"))
        assert isinstance(manager, KeyedLockManager)

    def test_redis_backend(self):
        manager = get_lock_manager(
            DeviceManagerConfig(lock_backend="redis", redis_url="redis://localhost:6379/1")
        )
        assert isinstance(manager, RedisLockManager)
        assert manager.stats["backend"] == "redis"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            DeviceManagerConfig(lock_backend="zookeeper")
