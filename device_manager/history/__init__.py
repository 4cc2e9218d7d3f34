"""Historial de assets: diff de metadata, eventos y sinks."""

from .diff import compare_metadata
from .emitter import HistoryEmitter, build_history_event, updated_asset_measure_names
from .sink import DocumentHistorySink, HistorySink

__all__ = [
    "compare_metadata",
    "HistoryEmitter",
    "build_history_event",
    "updated_asset_measure_names",
    "DocumentHistorySink",
    "HistorySink",
]
