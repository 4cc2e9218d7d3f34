"""Retry con backoff exponencial para operaciones async.

Usado por el document store PostgreSQL para reintentar conflictos de
versión (retry_on_conflict).
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuración para retry con backoff."""

    max_attempts: int = 3
    base_delay: float = 0.05  # segundos
    max_delay: float = 1.0  # segundos
    exponential_base: float = 2.0
    jitter: bool = True  # Añadir variación aleatoria
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)

    def calculate_delay(self, attempt: int) -> float:
        """Calcula el delay para un intento dado.

        Args:
            attempt: Número de intento (1-indexed)

        Returns:
            Delay en segundos
        """
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Jitter de ±25%
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0, delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    *,
    operation: str = "operation",
    on_retry: Optional[Callable[[int, Exception], None]] = None,
) -> T:
    """Ejecuta ``func`` reintentando las excepciones configuradas.

    Con ``max_attempts=1`` no hay reintentos. La última excepción se propaga.
    """
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func()

        except config.retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.warning(
                    "RETRY_EXHAUSTED op=%s attempts=%d err=%s",
                    operation, attempt, e,
                )
                raise

            delay = config.calculate_delay(attempt)
            logger.debug(
                "RETRY op=%s attempt=%d/%d delay=%.3fs err=%s",
                operation, attempt, config.max_attempts, delay, e,
            )

            if on_retry:
                on_retry(attempt, e)

            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop completed without result")
