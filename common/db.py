from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def get_engine(settings: Optional[Settings] = None) -> Optional[Engine]:
    """Engine PostgreSQL (singleton).

    Retorna None si POSTGRES_URL no está configurado: el servicio sigue
    funcionando con el document store en memoria.
    """
    global _engine

    if _engine is not None:
        return _engine

    settings = settings or get_settings()
    if not settings.postgres_url:
        logger.info("[DB] POSTGRES_URL not configured - in-memory document store only")
        return None

    # Nunca loggear la URL completa (credenciales)
    logger.info("[DB] Creating engine host=%s", settings.postgres_url.split("@")[-1])

    engine = create_engine(
        settings.postgres_url,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle,
        future=True,
    )

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Connection test OK")
    except Exception:
        logger.exception("[DB] Connection test FAILED")
        raise

    _engine = engine
    return _engine


def reset_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
