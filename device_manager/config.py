"""Configuración del device manager.

Todos los campos reconocidos están enumerados aquí con su default; no se
mezclan objetos de configuración arbitrarios en runtime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from common.config import load_env_file


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DeviceManagerConfig:
    """Configuración del plugin."""

    admin_index: str = "device-manager"

    devices_collection: str = "devices"
    assets_collection: str = "assets"
    measures_collection: str = "measures"
    payloads_collection: str = "payloads"
    assets_history_collection: str = "assets-history"

    # Reservado para backends con buffer de escritura; ningún store lo usa
    # todavía y from_env no lo lee
    batch_interval_ms: int = 10

    retry_on_conflict: int = 10

    lock_backend: str = "local"  # local | redis
    lock_timeout_seconds: float = 30.0
    lock_lease_seconds: float = 60.0

    redis_url: str = "redis://localhost:6379/0"
    postgres_url: Optional[str] = None

    auto_provisioning: bool = True

    def __post_init__(self) -> None:
        if self.lock_backend not in ("local", "redis"):
            raise ValueError(f"Unknown lock backend: {self.lock_backend!r}")
        if self.retry_on_conflict < 0:
            raise ValueError("retry_on_conflict must be >= 0")

    @classmethod
    def from_env(cls) -> "DeviceManagerConfig":
        load_env_file()
        return cls(
            admin_index=os.getenv("DM_ADMIN_INDEX", "device-manager"),
            devices_collection=os.getenv("DM_DEVICES_COLLECTION", "devices"),
            assets_collection=os.getenv("DM_ASSETS_COLLECTION", "assets"),
            measures_collection=os.getenv("DM_MEASURES_COLLECTION", "measures"),
            payloads_collection=os.getenv("DM_PAYLOADS_COLLECTION", "payloads"),
            assets_history_collection=os.getenv("DM_ASSETS_HISTORY_COLLECTION", "assets-history"),
            retry_on_conflict=int(os.getenv("DM_RETRY_ON_CONFLICT", "10")),
            lock_backend=os.getenv("DM_LOCK_BACKEND", "local").strip().lower(),
            lock_timeout_seconds=float(os.getenv("DM_LOCK_TIMEOUT", "30")),
            lock_lease_seconds=float(os.getenv("DM_LOCK_LEASE", "60")),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            postgres_url=os.getenv("POSTGRES_URL") or None,
            auto_provisioning=_env_bool("DM_AUTO_PROVISIONING", "true"),
        )
