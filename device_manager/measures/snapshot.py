"""Merge de medidas en el snapshot del gemelo digital.

Regla: la medida más nueva gana; en empate gana la existente.
"""

from __future__ import annotations

from typing import Iterable, Literal, Optional

from ..core.domain import DigitalTwin, MeasureRecord

TwinKind = Literal["device", "asset"]


def _target_name(kind: TwinKind, measure: MeasureRecord) -> Optional[str]:
    if kind == "asset":
        return measure.asset_measure_name
    return measure.origin.measure_name


def update_embedded_measures(
    kind: TwinKind,
    digital_twin: DigitalTwin,
    measures: Iterable[MeasureRecord],
) -> None:
    """Actualiza ``digital_twin.measures`` in place.

    Para un asset, las medidas sin nombre del lado del asset (no mapeadas
    en el link) se ignoran. Idempotente: re-aplicar medidas iguales o más
    viejas no cambia nada.
    """
    for measure in measures:
        name = _target_name(kind, measure)
        if name is None:
            continue

        previous = digital_twin.measures.get(name)
        if previous is not None and previous.measured_at >= measure.measured_at:
            continue

        digital_twin.measures[name] = measure.to_snapshot(name)
