"""Registro de decoders: un decoder por modelo de device."""

from __future__ import annotations

import logging
from typing import Dict, List

from ..errors import NotFoundError
from .base import Decoder

logger = logging.getLogger(__name__)


class DecodersRegistry:

    def __init__(self) -> None:
        self._decoders: Dict[str, Decoder] = {}

    def register(self, decoder: Decoder) -> Decoder:
        if not decoder.device_model:
            decoder.device_model = type(decoder).__name__.replace("Decoder", "")

        if not decoder.measures:
            raise ValueError(
                f'Decoder "{decoder.device_model}" did not declare any measures'
            )

        if decoder.device_model in self._decoders:
            raise ValueError(
                f'Decoder for device model "{decoder.device_model}" already registered'
            )

        self._decoders[decoder.device_model] = decoder
        logger.info("[DECODERS] Decoder for %s registered", decoder.device_model)
        return decoder

    def has(self, device_model: str) -> bool:
        return device_model in self._decoders

    def get(self, device_model: str) -> Decoder:
        if device_model not in self._decoders:
            raise NotFoundError(f'Cannot find decoder for "{device_model}"')
        return self._decoders[device_model]

    def list(self) -> List[dict]:
        return [decoder.serialize() for decoder in self._decoders.values()]
