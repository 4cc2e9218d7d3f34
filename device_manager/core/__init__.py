"""Core module - Modelo de dominio del device manager.

Estructura:
- domain/   → Measurement, Device, Asset, MeasureRecord, HistoryEvent
- merge.py  → Deep merge de documentos y metadata
"""
