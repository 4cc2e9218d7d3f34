"""Destinos del historial de assets."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ..config import DeviceManagerConfig
from ..core.domain import Asset, HistoryEvent
from ..storage import DocumentStore

logger = logging.getLogger(__name__)


class HistorySink(ABC):
    """Consume eventos de historial."""

    @abstractmethod
    async def add(self, event: HistoryEvent, asset: Asset) -> None:
        pass


class DocumentHistorySink(HistorySink):
    """Escribe una entrada por evento en la colección ``assets-history`` del tenant."""

    def __init__(self, store: DocumentStore, config: DeviceManagerConfig):
        self._store = store
        self._config = config

    async def add(self, event: HistoryEvent, asset: Asset) -> None:
        await self._store.create(
            event.engine_id,
            self._config.assets_history_collection,
            {
                "id": asset.id,
                "event": event.to_dict(),
                "asset": asset.to_dict(),
                "historizedAt": event.timestamp,
            },
        )
        logger.debug(
            "[HISTORY] Added %s event for asset=%s engine=%s",
            event.name, asset.id, event.engine_id,
        )
