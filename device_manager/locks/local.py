"""Lock por clave dentro del proceso (asyncio).

Un ``asyncio.Lock`` por clave, creado bajo demanda y descartado cuando no
quedan holders ni waiters.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from ..errors import LockTimeout
from .base import LockManager

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def _abandon(lock: asyncio.Lock, task: "asyncio.Task[bool]") -> None:
    if not task.done():
        task.cancel()
    elif not task.cancelled() and task.exception() is None:
        # El acquire ganó la carrera contra el timeout: nadie va a liberarlo
        lock.release()


async def _acquire(lock: asyncio.Lock, timeout: float) -> bool:
    """Toma ``lock`` antes de ``timeout``; retorna False si venció el plazo.

    Si el plazo vence (o el caller es cancelado) justo cuando el acquire
    termina, el lock se libera antes de salir y nunca queda tomado sin dueño.
    """
    task = asyncio.create_task(lock.acquire())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except BaseException:
        _abandon(lock, task)
        raise

    if task in done:
        return task.result()
    _abandon(lock, task)
    return False


class KeyedLockManager(LockManager):

    def __init__(self, timeout_seconds: float = 30.0):
        self._timeout = timeout_seconds
        self._entries: Dict[str, _Entry] = {}

    def _release_entry(self, key: str, entry: _Entry) -> None:
        entry.users -= 1
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.users += 1

        try:
            acquired = await _acquire(entry.lock, self._timeout)
        except BaseException:
            self._release_entry(key, entry)
            raise

        if not acquired:
            self._release_entry(key, entry)
            logger.warning("[LOCK] Timeout acquiring key=%s after %.1fs", key, self._timeout)
            raise LockTimeout(key, self._timeout)

        logger.debug("[LOCK] Acquired key=%s", key)
        try:
            yield
        finally:
            entry.lock.release()
            self._release_entry(key, entry)
            logger.debug("[LOCK] Released key=%s", key)

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @property
    def stats(self) -> dict:
        return {
            "backend": "local",
            "active_keys": len(self._entries),
            "timeout_seconds": self._timeout,
        }
