"""Contrato de los decoders.

Un decoder transforma el payload crudo de un fabricante en medidas
tipadas por referencia de device. Las implementaciones concretas viven
fuera de este repo; aquí solo se define la interfaz.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..core.domain import DecodedMeasurement
from ..core.merge import deep_merge
from ..errors import ValidationError


@dataclass(frozen=True)
class DecoderMeasure:
    """Medida declarada por un decoder: nombre del lado device y tipo."""
    name: str
    type: str


class DecodedPayload:
    """Resultado de decodificar un payload: medidas y metadata por referencia."""

    def __init__(self, decoder: "Decoder"):
        self._declared = {m.name: m for m in decoder.measures}
        self._device_model = decoder.device_model
        self._measurements: Dict[str, List[DecodedMeasurement]] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def add_measurement(
        self,
        reference: str,
        measure_name: str,
        values: Dict[str, Any],
        measured_at: int,
        measure_type: Optional[str] = None,
    ) -> DecodedMeasurement:
        declared = self._declared.get(measure_name)
        if declared is None:
            raise ValidationError(
                f'Decoder "{self._device_model}" has no measure named "{measure_name}"'
            )

        measurement = DecodedMeasurement(
            measure_name=measure_name,
            type=measure_type or declared.type,
            measured_at=measured_at,
            values=values,
        )
        self._measurements.setdefault(reference, []).append(measurement)
        return measurement

    def add_metadata(self, reference: str, metadata: Dict[str, Any]) -> None:
        deep_merge(self._metadata.setdefault(reference, {}), metadata)

    @property
    def references(self) -> List[str]:
        refs = list(self._measurements)
        refs.extend(ref for ref in self._metadata if ref not in self._measurements)
        return refs

    def measurements(self, reference: str) -> List[DecodedMeasurement]:
        return list(self._measurements.get(reference, []))

    def metadata(self, reference: str) -> Dict[str, Any]:
        return dict(self._metadata.get(reference, {}))


class Decoder(ABC):
    """Decoder de payloads para un modelo de device."""

    device_model: str = ""
    measures: Sequence[DecoderMeasure] = ()

    async def validate(self, payload: Dict[str, Any]) -> bool:
        """Valida el payload crudo. False descarta el payload sin error."""
        return True

    @abstractmethod
    async def decode(self, decoded_payload: DecodedPayload, payload: Dict[str, Any]) -> DecodedPayload:
        pass

    @property
    def measure_names(self) -> List[str]:
        return [m.name for m in self.measures]

    def serialize(self) -> dict:
        return {
            "deviceModel": self.device_model,
            "measures": [{"name": m.name, "type": m.type} for m in self.measures],
        }
