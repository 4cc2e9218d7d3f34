"""Locks por clave: serialización de ingesta por device y por asset."""

from .base import LockManager, asset_lock_key, ingest_lock_key
from .local import KeyedLockManager
from .redis_lock import RedisLockManager

__all__ = [
    "LockManager",
    "KeyedLockManager",
    "RedisLockManager",
    "asset_lock_key",
    "ingest_lock_key",
    "get_lock_manager",
]


def get_lock_manager(config) -> LockManager:
    """Crea el lock manager según ``config.lock_backend``."""
    if config.lock_backend == "redis":
        return RedisLockManager.from_url(
            config.redis_url,
            timeout_seconds=config.lock_timeout_seconds,
            lease_seconds=config.lock_lease_seconds,
        )
    return KeyedLockManager(timeout_seconds=config.lock_timeout_seconds)
