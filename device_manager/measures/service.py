"""Orquestador de ingesta de medidas.

Flujo de ``ingest`` (todo bajo el lock del device):

    IDLE → LOCK_ACQUIRED → BEFORE_ENRICHMENT → SNAPSHOT_MERGE
         → PERSISTING → AFTER_ENRICHMENT → DONE

Cualquier error lleva a ABORTED y se propaga al caller. Las escrituras
ya confirmadas antes del error no se revierten.

Si el device está vinculado a un asset, el lock ``asset:{engine}:{asset}``
se toma dentro del lock del device (orden device → asset, nunca al revés)
para que dos devices del mismo asset no pisen su snapshot. Se libera al
terminar las escrituras, antes de los subscribers de ``after``, que pueden
volver a tomarlo (p. ej. con ``register_by_asset``).
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from ..config import DeviceManagerConfig
from ..core.domain import (
    Asset,
    DecodedMeasurement,
    Device,
    HistoryEvent,
    MeasureOrigin,
    MeasureRecord,
    OriginType,
)
from ..core.merge import deep_merge
from ..decoders import DecodersRegistry
from ..errors import DeviceManagerError, NotFoundError, PersistenceError, ValidationError
from ..events import (
    EVENT_MEASURES_PROCESS_AFTER,
    EVENT_MEASURES_PROCESS_BEFORE,
    EnrichmentEventBus,
    EnrichmentPayload,
)
from ..history import HistoryEmitter
from ..locks import LockManager, asset_lock_key, ingest_lock_key
from ..metrics import ingestion_metrics
from ..storage import DocumentStore
from .builder import asset_measure_context, build_measures
from .registry import MeasuresRegistry, validate_measurements
from .snapshot import update_embedded_measures

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    BEFORE_ENRICHMENT = "before_enrichment"
    SNAPSHOT_MERGE = "snapshot_merge"
    PERSISTING = "persisting"
    AFTER_ENRICHMENT = "after_enrichment"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class IngestionResult:
    """Resultado de una ingesta terminada (DONE)."""

    state: IngestionState
    device: Device
    asset: Optional[Asset] = None
    measures: List[MeasureRecord] = field(default_factory=list)
    history_event: Optional[HistoryEvent] = None


class _Run:
    """Estado mutable de una ingesta en curso."""

    __slots__ = ("device_id", "state")

    def __init__(self, device_id: str):
        self.device_id = device_id
        self.state = IngestionState.IDLE

    def advance(self, state: IngestionState) -> None:
        logger.debug("[INGEST] [%s] %s -> %s", self.device_id, self.state.value, state.value)
        self.state = state


def _now_ms() -> int:
    return int(time.time() * 1000)


def _snapshot_paths(twin) -> List[str]:
    """Cada medida del snapshot se reescribe entera, sin mezclar sus values."""
    return [f"measures.{name}" for name in twin.measures]


async def _gather_all(*aws) -> List[Any]:
    """Espera todas las coroutines y relanza el primer error, si hubo alguno."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class MeasureService:

    def __init__(
        self,
        config: DeviceManagerConfig,
        store: DocumentStore,
        locks: LockManager,
        bus: EnrichmentEventBus,
        history: HistoryEmitter,
        measures_registry: Optional[MeasuresRegistry] = None,
        decoders_registry: Optional[DecodersRegistry] = None,
    ):
        self._config = config
        self._store = store
        self._locks = locks
        self._bus = bus
        self._history = history
        self._measures_registry = measures_registry
        self._decoders_registry = decoders_registry

    # =========================================================================
    # Ingesta desde device
    # =========================================================================

    async def ingest(
        self,
        device: Device,
        measurements: Optional[Sequence[Any]],
        metadata: Optional[Dict[str, Any]] = None,
        payload_uuids: Optional[Sequence[str]] = None,
    ) -> IngestionResult:
        """Ingresa las medidas decodificadas de un device.

        Args:
            device: device que emitió las medidas (se relee dentro del lock)
            measurements: ``DecodedMeasurement`` o dicts con el mismo formato
            metadata: metadata del payload, se mergea sobre la del device
            payload_uuids: uuids de los payloads de origen

        Raises:
            ValidationError: medidas inválidas (nada se escribe)
            LinkInconsistency: el asset no registra al device
            PersistenceError: falló alguna escritura
            LockTimeout: no se adquirió el lock a tiempo
        """
        run = _Run(device.id)
        start = time.perf_counter()

        try:
            async with self._locks.hold(ingest_lock_key(device.id)):
                run.advance(IngestionState.LOCK_ACQUIRED)
                result = await self._ingest_locked(
                    run, device, measurements, metadata or {}, list(payload_uuids or []),
                )
        except Exception as e:
            failed_at = run.state
            run.advance(IngestionState.ABORTED)
            ingestion_metrics.INGESTIONS.labels(status="aborted").inc()
            ingestion_metrics.INGESTION_ERRORS.labels(error_type=type(e).__name__).inc()
            if isinstance(e, DeviceManagerError):
                logger.warning(
                    "[INGEST] [%s] Aborted at %s: %s", device.id, failed_at.value, e,
                )
            else:
                logger.exception("[INGEST] [%s] Aborted at %s", device.id, failed_at.value)
            raise
        finally:
            ingestion_metrics.INGESTION_DURATION.observe(time.perf_counter() - start)

        ingestion_metrics.INGESTIONS.labels(status="done" if result.measures else "empty").inc()
        return result

    async def _ingest_locked(
        self,
        run: _Run,
        device: Device,
        measurements: Optional[Sequence[Any]],
        metadata: Dict[str, Any],
        payload_uuids: List[str],
    ) -> IngestionResult:
        if not measurements:
            logger.warning(
                "[INGEST] Cannot find measurements for device %s", device.reference,
            )
            run.advance(IngestionState.DONE)
            return IngestionResult(state=run.state, device=device)

        device = await self._refresh_device(device)

        validated = validate_measurements(
            measurements,
            self._measures_registry,
            self._allowed_measure_names(device.model),
        )

        # El lock del asset cubre solo lectura, merge y escritura del asset
        async with AsyncExitStack() as stack:
            if device.engine_id and device.asset_id:
                await stack.enter_async_context(
                    self._locks.hold(asset_lock_key(device.engine_id, device.asset_id))
                )
            result = await self._process(run, device, validated, metadata, payload_uuids)

        run.advance(IngestionState.AFTER_ENRICHMENT)
        await self._bus.trigger(
            EVENT_MEASURES_PROCESS_AFTER,
            EnrichmentPayload(device=result.device, asset=result.asset, measures=result.measures),
            engine_id=result.device.engine_id,
        )

        run.advance(IngestionState.DONE)
        result.state = run.state
        logger.info(
            "[INGEST] [%s] Ingested measures=%d asset=%s",
            result.device.id, len(result.measures),
            result.asset.id if result.asset is not None else None,
        )
        return result

    async def _process(
        self,
        run: _Run,
        device: Device,
        measurements: List[DecodedMeasurement],
        metadata: Dict[str, Any],
        payload_uuids: List[str],
    ) -> IngestionResult:
        engine_id = device.engine_id
        asset = await self._try_get_linked_asset(engine_id, device.asset_id)

        # Snapshot previo para el diff del historial
        before_metadata = copy.deepcopy(asset.metadata) if asset is not None else {}

        if metadata:
            deep_merge(device.metadata, copy.deepcopy(metadata))

        run.advance(IngestionState.BEFORE_ENRICHMENT)
        measures = build_measures(device, asset, measurements, payload_uuids)
        enriched = await self._bus.pipe(
            EVENT_MEASURES_PROCESS_BEFORE,
            EnrichmentPayload(device=device, asset=asset, measures=measures),
            engine_id=engine_id,
        )
        # Los subscribers mutan device/asset in place; solo se toma la lista
        measures = enriched.measures

        run.advance(IngestionState.SNAPSHOT_MERGE)
        update_embedded_measures("device", device, measures)
        if asset is not None:
            update_embedded_measures("asset", asset, measures)

        run.advance(IngestionState.PERSISTING)
        asset, history_event = await self._persist(device, asset, measures, before_metadata)

        return IngestionResult(
            state=run.state,
            device=device,
            asset=asset,
            measures=measures,
            history_event=history_event,
        )

    # =========================================================================
    # Lecturas
    # =========================================================================

    async def _refresh_device(self, device: Device) -> Device:
        """Relee el device del índice admin; si aún no existe usa la copia recibida."""
        try:
            document = await self._store.get(
                self._config.admin_index, self._config.devices_collection, device.id,
            )
        except NotFoundError:
            return device
        return Device.from_document(document.id, document.source)

    def _allowed_measure_names(self, device_model: str) -> Optional[Set[str]]:
        if self._decoders_registry is None or not self._decoders_registry.has(device_model):
            return None
        return set(self._decoders_registry.get(device_model).measure_names)

    async def _try_get_linked_asset(
        self,
        engine_id: Optional[str],
        asset_id: Optional[str],
    ) -> Optional[Asset]:
        """Asset vinculado, o None. Un fallo de lectura no aborta la ingesta."""
        if not asset_id:
            return None
        if not engine_id:
            logger.warning("[INGEST] Asset %s linked to a device without engine", asset_id)
            return None

        try:
            document = await self._store.get(
                engine_id, self._config.assets_collection, asset_id,
            )
        except Exception as e:
            logger.error("[INGEST] [%s] Cannot find asset %s: %s", engine_id, asset_id, e)
            return None
        return Asset.from_document(document.id, document.source)

    # =========================================================================
    # Escrituras
    # =========================================================================

    async def _persist(
        self,
        device: Device,
        asset: Optional[Asset],
        measures: List[MeasureRecord],
        before_metadata: Dict[str, Any],
    ) -> tuple[Optional[Asset], Optional[HistoryEvent]]:
        """Escrituras en paralelo. Se esperan todas antes de reportar un error."""
        engine_id = device.engine_id
        writes = [self._update_admin_device(device)]
        asset_write = None

        if engine_id:
            writes.append(self._update_engine_device(engine_id, device))
            writes.append(self._create_measures(engine_id, measures))
            if asset is not None:
                asset_write = len(writes)
                writes.append(
                    self._update_asset_and_historize(engine_id, asset, measures, before_metadata)
                )

        results = await _gather_all(*writes)

        if asset_write is None:
            return asset, None
        return results[asset_write]

    async def _update_admin_device(self, device: Device) -> None:
        try:
            await self._store.update(
                self._config.admin_index,
                self._config.devices_collection,
                device.id,
                {"metadata": device.metadata, "measures": device.to_dict()["measures"]},
                source=False,
                retry_on_conflict=self._config.retry_on_conflict,
                replace=_snapshot_paths(device),
            )
        except Exception as e:
            raise PersistenceError("device", device.id, str(e)) from e

    async def _update_engine_device(self, engine_id: str, device: Device) -> None:
        try:
            await self._store.update(
                engine_id,
                self._config.devices_collection,
                device.id,
                {"metadata": device.metadata, "measures": device.to_dict()["measures"]},
                source=False,
                retry_on_conflict=self._config.retry_on_conflict,
                replace=_snapshot_paths(device),
            )
        except Exception as e:
            raise PersistenceError("engine device", device.id, str(e)) from e

    async def _create_measures(self, engine_id: str, measures: List[MeasureRecord]) -> None:
        if not measures:
            return

        try:
            result = await self._store.m_create(
                engine_id,
                self._config.measures_collection,
                [measure.to_dict() for measure in measures],
            )
        except Exception as e:
            raise PersistenceError("measures", None, str(e)) from e

        ingestion_metrics.MEASURES_INGESTED.inc(len(result.successes))
        if result.errors:
            logger.error(
                "[INGEST] [%s] %d/%d measures rejected by the store",
                engine_id, len(result.errors), len(measures),
            )
            raise PersistenceError("measures", None, result.errors[0].reason)

    async def _update_asset_and_historize(
        self,
        engine_id: str,
        asset: Asset,
        measures: List[MeasureRecord],
        before_metadata: Dict[str, Any],
    ) -> tuple[Asset, HistoryEvent]:
        body = asset.to_dict()
        try:
            document = await self._store.update(
                engine_id,
                self._config.assets_collection,
                asset.id,
                {"metadata": body["metadata"], "measures": body["measures"]},
                source=True,
                replace=_snapshot_paths(asset),
            )
        except Exception as e:
            raise PersistenceError("asset", asset.id, str(e)) from e

        updated = Asset.from_document(document.id, document.source)
        event = await self._history.emit(engine_id, updated, measures, before_metadata)
        return updated, event

    # =========================================================================
    # Medida de usuario sobre un asset
    # =========================================================================

    async def register_by_asset(
        self,
        engine_id: str,
        asset_id: str,
        measure: Dict[str, Any],
        user_id: str,
    ) -> Asset:
        """Registra una medida ingresada por un usuario directamente en un asset.

        ``measure`` tiene el formato ``{"name", "type", "values", "measuredAt"?}``.
        """
        async with self._locks.hold(asset_lock_key(engine_id, asset_id)):
            try:
                document = await self._store.get(
                    engine_id, self._config.assets_collection, asset_id,
                )
            except NotFoundError as e:
                raise NotFoundError(f'Asset "{asset_id}" does not exist') from e
            asset = Asset.from_document(document.id, document.source)

            record = self._build_user_measure(asset, measure, user_id)
            update_embedded_measures("asset", asset, [record])

            updated, _ = await _gather_all(
                self._update_asset_measures(engine_id, asset),
                self._create_measures(engine_id, [record]),
            )

        logger.info(
            "[INGEST] [%s] User %s registered measure %s on asset %s",
            engine_id, user_id, record.asset_measure_name, asset_id,
        )
        return updated

    def _build_user_measure(
        self,
        asset: Asset,
        measure: Dict[str, Any],
        user_id: str,
    ) -> MeasureRecord:
        measure_type = measure.get("type")
        name = measure.get("name")
        values = measure.get("values")

        if not measure_type:
            raise ValidationError(f'Invalid measure for asset "{asset.id}": missing "type"')
        if not name:
            raise ValidationError(f'Invalid measure for asset "{asset.id}": missing "name"')
        if not values or not isinstance(values, dict):
            raise ValidationError(f'Invalid measure for asset "{asset.id}": missing "values"')

        if self._measures_registry is not None:
            self._measures_registry.validate_values(measure_type, values)

        measured_at = measure.get("measuredAt")
        if measured_at is None:
            measured_at = _now_ms()
        elif isinstance(measured_at, bool) or not isinstance(measured_at, int):
            raise ValidationError(
                f'Invalid measure for asset "{asset.id}": "measuredAt" must be an integer'
            )

        return MeasureRecord(
            type=measure_type,
            measured_at=measured_at,
            values=copy.deepcopy(values),
            origin=MeasureOrigin(id=user_id, measure_name=name, type=OriginType.USER),
            asset=asset_measure_context(asset, name),
        )

    async def _update_asset_measures(self, engine_id: str, asset: Asset) -> Asset:
        try:
            document = await self._store.update(
                engine_id,
                self._config.assets_collection,
                asset.id,
                {"measures": asset.to_dict()["measures"]},
                source=True,
                replace=_snapshot_paths(asset),
            )
        except Exception as e:
            raise PersistenceError("asset", asset.id, str(e)) from e
        return Asset.from_document(document.id, document.source)
