"""Eventos de enriquecimiento del pipeline de medidas."""

from .bus import EnrichmentEventBus, Handler, Subscription
from .payloads import (
    EVENT_MEASURES_PROCESS_AFTER,
    EVENT_MEASURES_PROCESS_BEFORE,
    EnrichmentPayload,
    tenant_event,
)

__all__ = [
    "EnrichmentEventBus",
    "Handler",
    "Subscription",
    "EnrichmentPayload",
    "EVENT_MEASURES_PROCESS_AFTER",
    "EVENT_MEASURES_PROCESS_BEFORE",
    "tenant_event",
]
