from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # El .env vive en la raíz del repo, junto a pyproject.toml.
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def load_env_file() -> None:
    # Carga el env file (si existe) pero las variables reales siempre ganan.
    env_file = os.getenv("DEVICE_MANAGER_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)


@dataclass(frozen=True)
class Settings:
    postgres_url: Optional[str]
    redis_url: str

    db_pool_recycle: int


def get_settings() -> Settings:
    load_env_file()

    postgres_url = os.getenv("POSTGRES_URL") or None
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    db_pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "300"))

    return Settings(
        postgres_url=postgres_url,
        redis_url=redis_url,
        db_pool_recycle=db_pool_recycle,
    )
