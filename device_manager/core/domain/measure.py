"""Modelos de medidas.

Una ``DecodedMeasurement`` sale del decoder; el builder la convierte en un
``MeasureRecord`` persistible y el merge la embebe como ``MeasureSnapshot``
en el gemelo digital (device o asset).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OriginType(str, Enum):
    """Origen de una medida."""
    DEVICE = "device"
    USER = "user"
    COMPUTED = "computed"


class DecodedMeasurement(BaseModel):
    """Medida decodificada de un payload.

    Formato esperado:
    {
        "measureName": "temperature",
        "type": "temperature",
        "measuredAt": 1706688000123,
        "values": {"temperature": 23.4}
    }
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    measure_name: str = Field(..., alias="measureName", min_length=1)
    type: str = Field(..., min_length=1)
    measured_at: int = Field(..., alias="measuredAt", ge=0)
    values: Dict[str, Any]

    @field_validator("measured_at", mode="before")
    @classmethod
    def validate_measured_at(cls, v):
        if isinstance(v, bool):
            raise ValueError("measuredAt must be an integer timestamp (ms)")
        if isinstance(v, float):
            if v != v or not v.is_integer():
                raise ValueError("measuredAt must be an integer timestamp (ms)")
            return int(v)
        return v

    @field_validator("values")
    @classmethod
    def validate_values(cls, v):
        if not v:
            raise ValueError("values cannot be empty")
        return v


@dataclass
class MeasureSnapshot:
    """Última medida conocida de un nombre, embebida en el gemelo digital."""

    name: str
    type: str
    measured_at: int
    values: Dict[str, Any]
    payload_uuids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "measuredAt": self.measured_at,
            "values": copy.deepcopy(self.values),
            "payloadUuids": list(self.payload_uuids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MeasureSnapshot":
        return cls(
            name=data["name"],
            type=data["type"],
            measured_at=int(data["measuredAt"]),
            values=dict(data.get("values") or {}),
            payload_uuids=list(data.get("payloadUuids") or []),
        )


@dataclass
class MeasureOrigin:
    """Origen de un MeasureRecord.

    ``id`` es el id del device (origen device), el id del usuario (origen
    user) o el id de la regla que calculó la medida (origen computed).
    """

    id: str
    measure_name: str
    type: OriginType = OriginType.DEVICE
    payload_uuids: List[str] = field(default_factory=list)
    device_model: Optional[str] = None
    reference: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "measureName": self.measure_name,
            "type": self.type.value,
            "payloadUuids": list(self.payload_uuids),
        }
        if self.device_model is not None:
            data["deviceModel"] = self.device_model
        if self.reference is not None:
            data["reference"] = self.reference
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MeasureOrigin":
        return cls(
            id=data["id"],
            measure_name=data["measureName"],
            type=OriginType(data.get("type", "device")),
            payload_uuids=list(data.get("payloadUuids") or []),
            device_model=data.get("deviceModel"),
            reference=data.get("reference"),
        )


@dataclass
class AssetMeasureContext:
    """Contexto del asset al momento de la medida.

    ``measure_name`` es None cuando el device está vinculado al asset pero
    la medida no tiene mapping en el link.
    """

    id: str
    measure_name: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    model: Optional[str] = None
    reference: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "measureName": self.measure_name,
            "metadata": copy.deepcopy(self.metadata),
            "model": self.model,
            "reference": self.reference,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssetMeasureContext":
        return cls(
            id=data["id"],
            measure_name=data.get("measureName"),
            metadata=dict(data.get("metadata") or {}),
            model=data.get("model"),
            reference=data.get("reference"),
        )


@dataclass
class MeasureRecord:
    """Documento append-only del measure log (colección ``measures``)."""

    type: str
    measured_at: int
    values: Dict[str, Any]
    origin: MeasureOrigin
    asset: Optional[AssetMeasureContext] = None

    @property
    def asset_measure_name(self) -> Optional[str]:
        if self.asset is None:
            return None
        return self.asset.measure_name

    def to_snapshot(self, name: str) -> MeasureSnapshot:
        return MeasureSnapshot(
            name=name,
            type=self.type,
            measured_at=self.measured_at,
            values=copy.deepcopy(self.values),
            payload_uuids=list(self.origin.payload_uuids),
        )

    def to_dict(self) -> dict:
        data = {
            "type": self.type,
            "measuredAt": self.measured_at,
            "values": copy.deepcopy(self.values),
            "origin": self.origin.to_dict(),
        }
        if self.asset is not None:
            data["asset"] = self.asset.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MeasureRecord":
        asset = data.get("asset")
        return cls(
            type=data["type"],
            measured_at=int(data["measuredAt"]),
            values=dict(data.get("values") or {}),
            origin=MeasureOrigin.from_dict(data["origin"]),
            asset=AssetMeasureContext.from_dict(asset) if asset else None,
        )
