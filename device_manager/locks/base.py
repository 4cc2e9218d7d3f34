"""Contrato de lock por clave."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Awaitable, Callable, TypeVar

T = TypeVar("T")


def ingest_lock_key(device_id: str) -> str:
    return f"measure:ingest:{device_id}"


def asset_lock_key(engine_id: str, asset_id: str) -> str:
    return f"asset:{engine_id}:{asset_id}"


class LockManager(ABC):
    """Exclusión mutua identificada por clave.

    Dos cuerpos con la misma clave nunca se ejecutan en paralelo; claves
    distintas son totalmente concurrentes. El lock se libera en toda salida
    (éxito, error, return temprano).
    """

    @abstractmethod
    def hold(self, key: str) -> AsyncContextManager[None]:
        """Context manager async que mantiene el lock ``key``.

        Raises:
            LockTimeout: si no se adquiere dentro del timeout configurado
        """

    async def with_lock(self, key: str, body: Callable[[], Awaitable[T]]) -> T:
        """Ejecuta ``body`` con el lock ``key`` y propaga su resultado o error."""
        async with self.hold(key):
            return await body()
