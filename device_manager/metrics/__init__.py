"""Metrics module for ingestion observability."""

from . import ingestion_metrics

__all__ = ["ingestion_metrics"]
