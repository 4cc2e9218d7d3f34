"""Decoders: contrato y registro."""

from .base import DecodedPayload, Decoder, DecoderMeasure
from .registry import DecodersRegistry

__all__ = ["DecodedPayload", "Decoder", "DecoderMeasure", "DecodersRegistry"]
