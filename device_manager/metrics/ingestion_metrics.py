"""Métricas Prometheus del pipeline de ingesta.

Solo datos agregados: ningún id de device/asset va en labels.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

INGESTIONS = Counter(
    "device_manager_ingestions_total",
    "Ingestions processed by the measure pipeline",
    ["status"],  # done, empty, aborted
)

INGESTION_ERRORS = Counter(
    "device_manager_ingestion_errors_total",
    "Aborted ingestions by error type",
    ["error_type"],
)

MEASURES_INGESTED = Counter(
    "device_manager_measures_ingested_total",
    "Measure records written to the measure log",
)

INGESTION_DURATION = Histogram(
    "device_manager_ingestion_duration_seconds",
    "End-to-end ingestion duration, lock wait included",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HISTORY_DISPATCH_FAILURES = Counter(
    "device_manager_history_dispatch_failures_total",
    "History events that could not be written to the history sink",
)

PAYLOADS_RECEIVED = Counter(
    "device_manager_payloads_received_total",
    "Raw payloads received",
    ["valid"],
)
