"""Evento de historial de asset."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class HistoryEvent:
    """Cambio sobre un asset producido por una ingesta.

    ``metadata_names`` solo se serializa si no está vacío.
    """

    asset_id: str
    engine_id: str
    timestamp: int
    measure_names: List[str] = field(default_factory=list)
    metadata_names: List[str] = field(default_factory=list)
    name: str = "measure"

    def to_dict(self) -> dict:
        data = {
            "assetId": self.asset_id,
            "engineId": self.engine_id,
            "timestamp": self.timestamp,
            "name": self.name,
            "measure": {"names": list(self.measure_names)},
        }
        if self.metadata_names:
            data["metadata"] = {"names": list(self.metadata_names)}
        return data

    @property
    def has_metadata_changes(self) -> bool:
        return bool(self.metadata_names)

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEvent":
        metadata: Optional[dict] = data.get("metadata")
        return cls(
            asset_id=data["assetId"],
            engine_id=data["engineId"],
            timestamp=int(data["timestamp"]),
            measure_names=list(data.get("measure", {}).get("names") or []),
            metadata_names=list((metadata or {}).get("names") or []),
            name=data.get("name", "measure"),
        )
