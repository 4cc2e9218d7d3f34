"""Pipeline de medidas: registro de tipos, builder, merge y orquestador."""

from .builder import asset_measure_context, build_measures
from .link_resolver import find_asset_measure_name
from .registry import (
    MeasureDefinition,
    MeasureUnit,
    MeasuresRegistry,
    default_registry,
    validate_measurements,
)
from .service import IngestionResult, IngestionState, MeasureService
from .snapshot import update_embedded_measures

__all__ = [
    "asset_measure_context",
    "build_measures",
    "find_asset_measure_name",
    "MeasureDefinition",
    "MeasureUnit",
    "MeasuresRegistry",
    "default_registry",
    "validate_measurements",
    "IngestionResult",
    "IngestionState",
    "MeasureService",
    "update_embedded_measures",
]
