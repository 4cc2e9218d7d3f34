"""Domain layer - Modelos de gemelos digitales y medidas."""

from .measure import (
    AssetMeasureContext,
    DecodedMeasurement,
    MeasureOrigin,
    MeasureRecord,
    MeasureSnapshot,
    OriginType,
)
from .digital_twin import Asset, Device, DeviceLink, DigitalTwin, MeasureNameLink
from .history import HistoryEvent

__all__ = [
    "AssetMeasureContext",
    "DecodedMeasurement",
    "MeasureOrigin",
    "MeasureRecord",
    "MeasureSnapshot",
    "OriginType",
    "Asset",
    "Device",
    "DeviceLink",
    "DigitalTwin",
    "MeasureNameLink",
    "HistoryEvent",
]
