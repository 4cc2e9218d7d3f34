"""Construcción de los MeasureRecord a persistir."""

from __future__ import annotations

import copy
from typing import List, Optional, Sequence

from ..core.domain import (
    Asset,
    AssetMeasureContext,
    DecodedMeasurement,
    Device,
    MeasureOrigin,
    MeasureRecord,
    OriginType,
)
from .link_resolver import find_asset_measure_name


def asset_measure_context(asset: Asset, measure_name: Optional[str]) -> AssetMeasureContext:
    """Contexto del asset embebido en cada medida (copia de su metadata)."""
    return AssetMeasureContext(
        id=asset.id,
        measure_name=measure_name,
        metadata=copy.deepcopy(asset.metadata),
        model=asset.model,
        reference=asset.reference,
    )


def build_measures(
    device: Device,
    asset: Optional[Asset],
    measurements: Sequence[DecodedMeasurement],
    payload_uuids: Sequence[str],
) -> List[MeasureRecord]:
    """Un MeasureRecord por medida, en el mismo orden. Sin I/O."""
    measures: List[MeasureRecord] = []

    for measurement in measurements:
        asset_measure_name = find_asset_measure_name(device, asset, measurement.measure_name)

        measures.append(
            MeasureRecord(
                type=measurement.type,
                measured_at=measurement.measured_at,
                values=copy.deepcopy(measurement.values),
                origin=MeasureOrigin(
                    id=device.id,
                    measure_name=measurement.measure_name,
                    type=OriginType.DEVICE,
                    payload_uuids=list(payload_uuids),
                    device_model=device.model,
                    reference=device.reference,
                ),
                asset=None if asset is None else asset_measure_context(asset, asset_measure_name),
            )
        )

    return measures
