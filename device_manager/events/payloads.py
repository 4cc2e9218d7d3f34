"""Payloads y nombres de eventos del pipeline de medidas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..core.domain import Asset, Device, MeasureRecord

EVENT_MEASURES_PROCESS_BEFORE = "device-manager:measures:process:before"
EVENT_MEASURES_PROCESS_AFTER = "device-manager:measures:process:after"


def tenant_event(engine_id: str, event: str) -> str:
    """Nombre del evento con scope de tenant/engine."""
    return f"engine:{engine_id}:{event}"


@dataclass
class EnrichmentPayload:
    """Lo que reciben los subscribers: asset (o None), device y medidas en vuelo.

    Los subscribers ``before`` pueden mutar ``measures`` (agregar, quitar,
    modificar) y la metadata del device/asset.
    """

    device: Device
    asset: Optional[Asset]
    measures: List[MeasureRecord] = field(default_factory=list)
