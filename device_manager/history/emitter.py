"""Emisor de eventos de historial de assets.

Se dispara solo cuando un asset participó en la ingesta y su update fue
confirmado. El envío al sink no afecta el éxito de la ingesta: los
fallos se loggean y se cuentan.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.domain import Asset, HistoryEvent, MeasureRecord
from ..metrics import ingestion_metrics
from .diff import compare_metadata
from .sink import HistorySink

logger = logging.getLogger(__name__)


def updated_asset_measure_names(measures: Sequence[MeasureRecord]) -> List[str]:
    """Nombres del lado asset de las medidas mapeadas, sin duplicados, en orden."""
    names: List[str] = []
    for measure in measures:
        name = measure.asset_measure_name
        if name is not None and name not in names:
            names.append(name)
    return names


def build_history_event(
    engine_id: str,
    asset_id: str,
    measures: Sequence[MeasureRecord],
    before_metadata: Mapping[str, Any],
    after_metadata: Mapping[str, Any],
    timestamp: Optional[int] = None,
) -> HistoryEvent:
    return HistoryEvent(
        asset_id=asset_id,
        engine_id=engine_id,
        timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        measure_names=updated_asset_measure_names(measures),
        metadata_names=compare_metadata(before_metadata, after_metadata),
    )


class HistoryEmitter:

    def __init__(self, sink: Optional[HistorySink]):
        self._sink = sink
        self._dispatched = 0
        self._failed = 0

    async def emit(
        self,
        engine_id: str,
        asset: Asset,
        measures: Sequence[MeasureRecord],
        before_metadata: Dict[str, Any],
    ) -> HistoryEvent:
        """Construye el evento desde el asset persistido y lo envía al sink."""
        event = build_history_event(
            engine_id=engine_id,
            asset_id=asset.id,
            measures=measures,
            before_metadata=before_metadata,
            after_metadata=asset.metadata,
        )

        if self._sink is None:
            return event

        try:
            await self._sink.add(event, asset)
            self._dispatched += 1
        except Exception:
            self._failed += 1
            ingestion_metrics.HISTORY_DISPATCH_FAILURES.inc()
            logger.exception(
                "[HISTORY] Dispatch failed for asset=%s engine=%s",
                asset.id, engine_id,
            )

        return event

    @property
    def stats(self) -> dict:
        return {
            "dispatched": self._dispatched,
            "failed": self._failed,
        }
