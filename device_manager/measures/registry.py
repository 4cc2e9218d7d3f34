"""Registro de tipos de medida.

Cada tipo declara su unidad y el mapping de sus valores. Al registrarse,
el mapping se compila a un modelo pydantic (``extra="forbid"``, campos
opcionales): una medida cuyo tipo no está registrado, o cuyos valores no
respetan el modelo, se rechaza con ValidationError antes de cualquier
escritura.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Type, Union

import pydantic
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    create_model,
)

from ..core.domain import DecodedMeasurement
from ..errors import ValidationError

logger = logging.getLogger(__name__)

SCHEMA_ERROR = "Provided measures do not respect their respective schemas"

Number = Union[StrictInt, StrictFloat]


@dataclass(frozen=True)
class MeasureUnit:
    name: str
    sign: str
    type: str = "number"


@dataclass
class MeasureDefinition:
    """Definición de un tipo de medida.

    Ejemplo:
        MeasureDefinition(
            type="temperature",
            unit=MeasureUnit(name="Degree", sign="°C"),
            values_mappings={"temperature": {"type": "float"}},
        )
    """

    type: str
    unit: MeasureUnit
    values_mappings: Dict[str, Dict[str, Any]] = field(default_factory=dict)


class GeoPoint(BaseModel):
    lat: Number
    lon: Number


_SCALAR_TYPES: Dict[str, Any] = {
    "float": Number,
    "double": Number,
    "half_float": Number,
    "scaled_float": Number,
    "integer": StrictInt,
    "long": StrictInt,
    "short": StrictInt,
    "keyword": StrictStr,
    "text": StrictStr,
    "boolean": StrictBool,
    "date": Union[StrictStr, StrictInt],
    "geo_point": GeoPoint,
}


def _field_type(model_name: str, mapping: Mapping[str, Any]) -> Any:
    """Tipo pydantic de un valor según su mapping (tipos estilo índice documental)."""
    value_type = mapping.get("type", "object")

    if value_type in _SCALAR_TYPES:
        return _SCALAR_TYPES[value_type]
    if value_type == "object":
        properties = mapping.get("properties")
        if not properties:
            return Dict[str, Any]
        return values_model(model_name, properties)

    logger.warning("[MEASURES] Unknown mapping type %r, any value accepted", value_type)
    return Any


def values_model(model_name: str, mappings: Mapping[str, Mapping[str, Any]]) -> Type[BaseModel]:
    """Compila un mapping de valores a un modelo pydantic.

    Los nombres de los valores van como alias: pueden no ser
    identificadores válidos o chocar con atributos de BaseModel.
    """
    fields: Dict[str, Any] = {}
    for i, (name, mapping) in enumerate(mappings.items()):
        field_type = _field_type(f"{model_name}.{name}", mapping)
        fields[f"v{i}"] = (Optional[field_type], Field(default=None, alias=name))

    return create_model(
        model_name,
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


def _error_location(error: pydantic.ValidationError) -> str:
    details = error.errors()
    if not details:
        return ""
    return ".".join(str(part) for part in details[0]["loc"])


class MeasuresRegistry:

    def __init__(self, definitions: Optional[Iterable[MeasureDefinition]] = None):
        self._definitions: Dict[str, MeasureDefinition] = {}
        self._models: Dict[str, Type[BaseModel]] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: MeasureDefinition) -> None:
        if definition.type in self._definitions:
            raise ValueError(f'Measure "{definition.type}" already registered')
        self._models[definition.type] = values_model(
            f"{definition.type}Values", definition.values_mappings,
        )
        self._definitions[definition.type] = definition
        logger.debug("[MEASURES] Registered measure type %s", definition.type)

    def has(self, measure_type: str) -> bool:
        return measure_type in self._definitions

    def get(self, measure_type: str) -> MeasureDefinition:
        if measure_type not in self._definitions:
            raise ValidationError(f'Measure type "{measure_type}" is not registered')
        return self._definitions[measure_type]

    @property
    def types(self) -> List[str]:
        return sorted(self._definitions)

    def validate_values(self, measure_type: str, values: Mapping[str, Any]) -> None:
        definition = self.get(measure_type)
        try:
            self._models[definition.type].model_validate(values)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f'{SCHEMA_ERROR}: value "{_error_location(e)}" of measure type "{measure_type}"'
            ) from e

    def validate(self, measurement: DecodedMeasurement) -> None:
        self.validate_values(measurement.type, measurement.values)


def validate_measurements(
    measurements: Iterable[Any],
    registry: Optional[MeasuresRegistry],
    allowed_names: Optional[Set[str]] = None,
) -> List[DecodedMeasurement]:
    """Normaliza y valida una lista de medidas decodificadas.

    Acepta ``DecodedMeasurement`` o dicts con el formato del decoder.

    Raises:
        ValidationError: campo faltante, nombre no declarado por el decoder,
            tipo no registrado o valores fuera de schema
    """
    validated: List[DecodedMeasurement] = []
    for raw in measurements:
        if isinstance(raw, DecodedMeasurement):
            measurement = raw
        else:
            try:
                measurement = DecodedMeasurement.model_validate(raw)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid measurement: {e}") from e

        if allowed_names is not None and measurement.measure_name not in allowed_names:
            raise ValidationError(
                f'Measure "{measurement.measure_name}" is not declared by the decoder'
            )

        if registry is not None:
            registry.validate(measurement)

        validated.append(measurement)
    return validated


def _float(name: str) -> Dict[str, Dict[str, Any]]:
    return {name: {"type": "float"}}


STANDARD_MEASURES: List[MeasureDefinition] = [
    MeasureDefinition(
        type="temperature",
        unit=MeasureUnit(name="Degree", sign="°"),
        values_mappings=_float("temperature"),
    ),
    MeasureDefinition(
        type="humidity",
        unit=MeasureUnit(name="Humidity", sign="%"),
        values_mappings=_float("humidity"),
    ),
    MeasureDefinition(
        type="position",
        unit=MeasureUnit(name="GPS", sign="", type="geo_point"),
        values_mappings={
            "position": {"type": "geo_point"},
            "altitude": {"type": "float"},
            "accuracy": {"type": "float"},
        },
    ),
    MeasureDefinition(
        type="movement",
        unit=MeasureUnit(name="Movement", sign="", type="boolean"),
        values_mappings={"movement": {"type": "boolean"}},
    ),
    MeasureDefinition(
        type="battery",
        unit=MeasureUnit(name="Volt", sign="v"),
        values_mappings={"battery": {"type": "integer"}},
    ),
    MeasureDefinition(
        type="brightness",
        unit=MeasureUnit(name="Lumens", sign="lm"),
        values_mappings=_float("lumens"),
    ),
    MeasureDefinition(
        type="co2",
        unit=MeasureUnit(name="Parts per million", sign="ppm"),
        values_mappings=_float("co2"),
    ),
    MeasureDefinition(
        type="acceleration",
        unit=MeasureUnit(name="Acceleration", sign="m/s²", type="object"),
        values_mappings={
            "acceleration": {
                "type": "object",
                "properties": {
                    "x": {"type": "float"},
                    "y": {"type": "float"},
                    "z": {"type": "float"},
                },
            },
            "accuracy": {"type": "float"},
        },
    ),
    MeasureDefinition(
        type="pressure",
        unit=MeasureUnit(name="Pascal", sign="Pa"),
        values_mappings=_float("pressure"),
    ),
]


def default_registry() -> MeasuresRegistry:
    return MeasuresRegistry(STANDARD_MEASURES)
