"""Gemelos digitales: Device y Asset.

Ambos comparten el snapshot ``measures``: nombre de medida → última medida
conocida. El snapshot se muta in place por ``update_embedded_measures``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .measure import MeasureSnapshot


def _measures_from_dict(data: Optional[dict]) -> Dict[str, MeasureSnapshot]:
    return {
        name: MeasureSnapshot.from_dict(snapshot)
        for name, snapshot in (data or {}).items()
    }


@dataclass
class DigitalTwin:
    id: str
    model: str
    reference: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    measures: Dict[str, MeasureSnapshot] = field(default_factory=dict)

    def _base_dict(self) -> dict:
        return {
            "model": self.model,
            "reference": self.reference,
            "metadata": copy.deepcopy(self.metadata),
            "measures": {name: m.to_dict() for name, m in self.measures.items()},
        }


@dataclass
class Device(DigitalTwin):
    """Device gemelo digital (índice admin y, si tiene engine, el del tenant)."""

    engine_id: Optional[str] = None
    asset_id: Optional[str] = None

    @staticmethod
    def build_id(model: str, reference: str) -> str:
        """Identidad del device: modelo + referencia."""
        return f"{model}-{reference}"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["engineId"] = self.engine_id
        data["assetId"] = self.asset_id
        return data

    @classmethod
    def from_document(cls, document_id: str, source: dict) -> "Device":
        return cls(
            id=document_id,
            model=source["model"],
            reference=source["reference"],
            metadata=copy.deepcopy(source.get("metadata") or {}),
            measures=_measures_from_dict(source.get("measures")),
            engine_id=source.get("engineId"),
            asset_id=source.get("assetId"),
        )


@dataclass
class MeasureNameLink:
    """Mapping nombre de medida device → nombre de medida asset."""
    device: str
    asset: str


@dataclass
class DeviceLink:
    device_id: str
    measure_names: List[MeasureNameLink] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deviceId": self.device_id,
            "measureNames": [
                {"device": m.device, "asset": m.asset} for m in self.measure_names
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceLink":
        return cls(
            device_id=data["deviceId"],
            measure_names=[
                MeasureNameLink(device=m["device"], asset=m["asset"])
                for m in data.get("measureNames") or []
            ],
        )


@dataclass
class Asset(DigitalTwin):
    """Asset gemelo digital (índice del tenant)."""

    linked_devices: List[DeviceLink] = field(default_factory=list)

    def find_link(self, device_id: str) -> Optional[DeviceLink]:
        for link in self.linked_devices:
            if link.device_id == device_id:
                return link
        return None

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["linkedDevices"] = [link.to_dict() for link in self.linked_devices]
        return data

    @classmethod
    def from_document(cls, document_id: str, source: dict) -> "Asset":
        return cls(
            id=document_id,
            model=source["model"],
            reference=source["reference"],
            metadata=copy.deepcopy(source.get("metadata") or {}),
            measures=_measures_from_dict(source.get("measures")),
            linked_devices=[
                DeviceLink.from_dict(link) for link in source.get("linkedDevices") or []
            ],
        )
