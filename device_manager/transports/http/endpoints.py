"""Endpoints REST del device manager.

- POST /payloads/{device_model}: payload crudo de un fabricante
- POST /engines/{engine_id}/assets/{asset_id}/measures: medida de usuario

Los errores del dominio se traducen a HTTP en ``main.create_app``.
"""

from __future__ import annotations

import logging
import uuid as uuid_lib
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request

from ...plugin import DeviceManager
from .schemas import AssetMeasureIn, AssetOut, IngestionOut, PayloadIngestResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["device-manager"])


def get_device_manager(request: Request) -> DeviceManager:
    return request.app.state.device_manager


@router.post("/payloads/{device_model}", response_model=PayloadIngestResult)
async def receive_payload(
    device_model: str,
    payload: Dict[str, Any] = Body(...),
    uuid: Optional[str] = Query(default=None),
    manager: DeviceManager = Depends(get_device_manager),
) -> PayloadIngestResult:
    """Recibe un payload crudo y lo ingesta con el decoder del modelo."""
    uuid = uuid or str(uuid_lib.uuid4())
    results = await manager.payload_service.receive(device_model, payload, uuid=uuid)

    return PayloadIngestResult(
        uuid=uuid,
        ingestions=[IngestionOut.from_result(r) for r in results],
    )


@router.post("/engines/{engine_id}/assets/{asset_id}/measures", response_model=AssetOut)
async def register_asset_measure(
    engine_id: str,
    asset_id: str,
    measure: AssetMeasureIn,
    user_id: str = Header(default="anonymous", alias="X-User-Id"),
    manager: DeviceManager = Depends(get_device_manager),
) -> AssetOut:
    asset = await manager.measure_service.register_by_asset(
        engine_id, asset_id, measure.to_measure(), user_id,
    )
    return AssetOut.from_asset(asset)


@router.get("/health")
def health():
    """Liveness check."""
    return {"status": "ok"}
