"""Resolución device → asset del nombre de medida."""

from __future__ import annotations

from typing import Optional

from ..core.domain import Asset, Device
from ..errors import LinkInconsistency


def find_asset_measure_name(
    device: Device,
    asset: Optional[Asset],
    device_measure_name: str,
) -> Optional[str]:
    """Nombre de la medida del lado del asset, o None.

    - Sin asset: None.
    - El asset no tiene link hacia el device: LinkInconsistency (el device
      cree estar vinculado pero el asset no lo registra).
    - El link no mapea esta medida: None (medida solo del device).
    """
    if asset is None:
        return None

    link = asset.find_link(device.id)
    if link is None:
        raise LinkInconsistency(device.id, asset.id)

    for measure_name in link.measure_names:
        if measure_name.device == device_measure_name:
            return measure_name.asset

    return None
