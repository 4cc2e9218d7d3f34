"""Lock distribuido con Redis.

Usa el lock de ``redis.asyncio`` con lease: si el proceso que lo tiene
muere, el lock expira solo después de ``lease_seconds``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.exceptions import LockError

from ..errors import LockTimeout
from .base import LockManager

logger = logging.getLogger(__name__)

KEY_PREFIX = "dm:lock:"


class RedisLockManager(LockManager):

    def __init__(
        self,
        client: redis.Redis,
        timeout_seconds: float = 30.0,
        lease_seconds: float = 60.0,
    ):
        self._client = client
        self._timeout = timeout_seconds
        self._lease = lease_seconds

    @classmethod
    def from_url(
        cls,
        url: str,
        timeout_seconds: float = 30.0,
        lease_seconds: float = 60.0,
    ) -> "RedisLockManager":
        client = redis.from_url(url, decode_responses=False)
        logger.info("[LOCK] Redis lock backend: %s", url.split("@")[-1])
        return cls(client, timeout_seconds=timeout_seconds, lease_seconds=lease_seconds)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            KEY_PREFIX + key,
            timeout=self._lease,
            blocking_timeout=self._timeout,
        )

        acquired = await lock.acquire()
        if not acquired:
            logger.warning("[LOCK] Timeout acquiring redis key=%s after %.1fs", key, self._timeout)
            raise LockTimeout(key, self._timeout)

        logger.debug("[LOCK] Acquired redis key=%s lease=%.1fs", key, self._lease)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # El lease expiró: otro proceso pudo haber tomado el lock
                logger.warning("[LOCK] Lease lost for key=%s: %s", key, e)

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def stats(self) -> dict:
        return {
            "backend": "redis",
            "timeout_seconds": self._timeout,
            "lease_seconds": self._lease,
        }
