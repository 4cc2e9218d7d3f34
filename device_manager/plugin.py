"""Ensamblado del device manager.

Construye una sola vez el store, los locks, el bus, los registros y los
servicios, y los expone a los transports. No hay estado global: cada
instancia de ``DeviceManager`` es independiente (tests, multi-app).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from common.db import get_engine
from common.config import get_settings

from .config import DeviceManagerConfig
from .decoders import Decoder, DecodersRegistry
from .events import EnrichmentEventBus, Handler, Subscription
from .history import DocumentHistorySink, HistoryEmitter, HistorySink
from .locks import LockManager, get_lock_manager
from .measures import MeasureDefinition, MeasureService, MeasuresRegistry, default_registry
from .payloads import PayloadService
from .storage import DocumentStore, InMemoryDocumentStore, PostgresDocumentStore, ensure_schema

logger = logging.getLogger(__name__)


def build_store(config: DeviceManagerConfig) -> DocumentStore:
    """PostgreSQL si hay URL configurada; si no, store en memoria."""
    if config.postgres_url:
        engine = get_engine(replace(get_settings(), postgres_url=config.postgres_url))
        if engine is not None:
            ensure_schema(engine)
            logger.info("[STORE] Using PostgreSQL document store")
            return PostgresDocumentStore(engine)

    logger.warning("[STORE] POSTGRES_URL not set, using in-memory document store")
    return InMemoryDocumentStore()


class DeviceManager:

    def __init__(
        self,
        config: Optional[DeviceManagerConfig] = None,
        store: Optional[DocumentStore] = None,
        locks: Optional[LockManager] = None,
        history_sink: Optional[HistorySink] = None,
        measures_registry: Optional[MeasuresRegistry] = None,
    ):
        self.config = config or DeviceManagerConfig.from_env()
        self.store = store if store is not None else build_store(self.config)
        self.locks = locks if locks is not None else get_lock_manager(self.config)
        self.bus = EnrichmentEventBus()
        self.measures_registry = measures_registry or default_registry()
        self.decoders_registry = DecodersRegistry()

        sink = history_sink if history_sink is not None else DocumentHistorySink(self.store, self.config)
        self.history = HistoryEmitter(sink)

        self.measure_service = MeasureService(
            config=self.config,
            store=self.store,
            locks=self.locks,
            bus=self.bus,
            history=self.history,
            measures_registry=self.measures_registry,
            decoders_registry=self.decoders_registry,
        )
        self.payload_service = PayloadService(
            config=self.config,
            store=self.store,
            decoders=self.decoders_registry,
            measures=self.measure_service,
        )

    def register_decoder(self, decoder: Decoder) -> Decoder:
        return self.decoders_registry.register(decoder)

    def register_measure(self, definition: MeasureDefinition) -> None:
        self.measures_registry.register(definition)

    def pipe(self, event: str, handler: Handler, engine_id: Optional[str] = None) -> Subscription:
        """Registra un subscriber de enriquecimiento (global o por tenant)."""
        return self.bus.register(event, handler, engine_id=engine_id)

    async def close(self) -> None:
        close = getattr(self.locks, "close", None)
        if close is not None:
            await close()
