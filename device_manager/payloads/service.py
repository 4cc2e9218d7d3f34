"""Recepción de payloads crudos.

Cada payload se guarda (válido o no) en la colección ``payloads`` del
índice admin antes de decodificarlo; después se ingestan las medidas de
cada device referenciado.
"""

from __future__ import annotations

import logging
import uuid as uuid_lib
from typing import Any, Dict, List, Optional

from ..config import DeviceManagerConfig
from ..core.domain import Device
from ..decoders import DecodedPayload, DecodersRegistry
from ..errors import ConflictError, NotFoundError, ProvisioningError, ValidationError
from ..measures import IngestionResult, MeasureService
from ..metrics import ingestion_metrics
from ..storage import DocumentStore

logger = logging.getLogger(__name__)


class PayloadService:

    def __init__(
        self,
        config: DeviceManagerConfig,
        store: DocumentStore,
        decoders: DecodersRegistry,
        measures: MeasureService,
    ):
        self._config = config
        self._store = store
        self._decoders = decoders
        self._measures = measures

    async def receive(
        self,
        device_model: str,
        payload: Dict[str, Any],
        uuid: Optional[str] = None,
    ) -> List[IngestionResult]:
        """Valida, guarda, decodifica e ingesta un payload.

        Returns:
            Un IngestionResult por device referenciado (vacío si el payload
            no pasó la validación del decoder)

        Raises:
            ValidationError: payload vacío o medidas inválidas
            NotFoundError: no hay decoder para ``device_model``
            ProvisioningError: device desconocido con auto-provisioning apagado
        """
        if not payload:
            raise ValidationError("The body must contain the payload.")

        decoder = self._decoders.get(device_model)
        uuid = uuid or str(uuid_lib.uuid4())

        valid = False
        try:
            valid = bool(await decoder.validate(payload))
        finally:
            await self._store.create(
                self._config.admin_index,
                self._config.payloads_collection,
                {
                    "uuid": uuid,
                    "deviceModel": decoder.device_model,
                    "valid": valid,
                    "payload": payload,
                },
                document_id=uuid,
            )
            ingestion_metrics.PAYLOADS_RECEIVED.labels(valid=str(valid).lower()).inc()

        if not valid:
            logger.info("[PAYLOAD] Skipped invalid payload %s for model %s", uuid, device_model)
            return []

        decoded = await decoder.decode(DecodedPayload(decoder), payload)

        results: List[IngestionResult] = []
        for reference in decoded.references:
            device = await self._get_or_provision(decoder.device_model, reference)
            results.append(
                await self._measures.ingest(
                    device,
                    decoded.measurements(reference),
                    decoded.metadata(reference),
                    [uuid],
                )
            )
        return results

    async def _get_or_provision(self, device_model: str, reference: str) -> Device:
        device_id = Device.build_id(device_model, reference)

        try:
            document = await self._store.get(
                self._config.admin_index, self._config.devices_collection, device_id,
            )
            return Device.from_document(document.id, document.source)
        except NotFoundError:
            pass

        if not self._config.auto_provisioning:
            raise ProvisioningError(
                f'The device "{device_id}" is not provisioned and auto-provisioning is disabled'
            )

        device = Device(id=device_id, model=device_model, reference=reference)
        try:
            await self._store.create(
                self._config.admin_index,
                self._config.devices_collection,
                device.to_dict(),
                document_id=device_id,
            )
        except ConflictError:
            # Otro payload lo provisionó en paralelo
            document = await self._store.get(
                self._config.admin_index, self._config.devices_collection, device_id,
            )
            return Device.from_document(document.id, document.source)

        logger.info("[PAYLOAD] Auto-provisioned device %s", device_id)
        return device
