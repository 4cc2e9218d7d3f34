from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...core.domain import Asset
from ...measures import IngestionResult


class AssetMeasureIn(BaseModel):
    # Medida ingresada por un usuario sobre un asset
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    values: Dict[str, Any]
    measured_at: Optional[int] = Field(default=None, alias="measuredAt", ge=0)

    def to_measure(self) -> Dict[str, Any]:
        measure: Dict[str, Any] = {"name": self.name, "type": self.type, "values": self.values}
        if self.measured_at is not None:
            measure["measuredAt"] = self.measured_at
        return measure


class IngestionOut(BaseModel):
    device_id: str
    asset_id: Optional[str] = None
    state: str
    measures: int
    history_measure_names: List[str] = Field(default_factory=list)
    history_metadata_names: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionOut":
        event = result.history_event
        return cls(
            device_id=result.device.id,
            asset_id=result.asset.id if result.asset is not None else None,
            state=result.state.value,
            measures=len(result.measures),
            history_measure_names=list(event.measure_names) if event else [],
            history_metadata_names=list(event.metadata_names) if event else [],
        )


class PayloadIngestResult(BaseModel):
    uuid: str
    ingestions: List[IngestionOut] = Field(default_factory=list)


class AssetOut(BaseModel):
    id: str
    model: str
    reference: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    measures: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetOut":
        data = asset.to_dict()
        return cls(
            id=asset.id,
            model=asset.model,
            reference=asset.reference,
            metadata=data["metadata"],
            measures=data["measures"],
        )
