"""Bus de eventos de enriquecimiento.

Registro explícito y ordenado de subscribers. El bus se construye al
arrancar y se pasa al orquestador; no hay registro global.

Orden de ejecución para un evento:
1. subscribers globales, en orden de registro
2. subscribers del tenant (``engine:{engineId}:<evento>``), encadenados
   con la salida de los globales

La ejecución es secuencial: cada subscriber ve las mutaciones del anterior.
Cualquier excepción se propaga sin capturar.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..core.domain import MeasureRecord
from .payloads import EnrichmentPayload, tenant_event

logger = logging.getLogger(__name__)

Handler = Callable[[EnrichmentPayload], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class Subscription:
    """Handle retornado por ``register``; sirve para ``unregister``."""
    id: int
    event: str


class EnrichmentEventBus:

    def __init__(self) -> None:
        self._handlers: Dict[str, List[tuple[Subscription, Handler]]] = {}
        self._ids = itertools.count(1)

    def register(
        self,
        event: str,
        handler: Handler,
        engine_id: Optional[str] = None,
    ) -> Subscription:
        name = tenant_event(engine_id, event) if engine_id else event
        subscription = Subscription(id=next(self._ids), event=name)
        self._handlers.setdefault(name, []).append((subscription, handler))
        logger.debug("[EVENTS] Registered handler #%d on %s", subscription.id, name)
        return subscription

    def unregister(self, subscription: Subscription) -> bool:
        handlers = self._handlers.get(subscription.event, [])
        for i, (sub, _) in enumerate(handlers):
            if sub == subscription:
                del handlers[i]
                return True
        return False

    def handlers(self, event: str) -> List[Handler]:
        return [handler for _, handler in self._handlers.get(event, [])]

    async def _call(self, handler: Handler, payload: EnrichmentPayload) -> Any:
        result = handler(payload)
        if inspect.isawaitable(result):
            result = await result
        return result

    @staticmethod
    def _coerce(event: str, payload: EnrichmentPayload, result: Any) -> EnrichmentPayload:
        if isinstance(result, EnrichmentPayload):
            payload = result
        elif isinstance(result, list):
            payload.measures = result
        else:
            raise TypeError(
                f'Handler for "{event}" must return the payload or a measures list, '
                f"got {type(result).__name__}"
            )

        for measure in payload.measures:
            if not isinstance(measure, MeasureRecord):
                raise TypeError(
                    f'Handler for "{event}" returned a non MeasureRecord measure: '
                    f"{type(measure).__name__}"
                )
        return payload

    async def pipe(
        self,
        event: str,
        payload: EnrichmentPayload,
        engine_id: Optional[str] = None,
    ) -> EnrichmentPayload:
        """Ejecuta los subscribers que pueden modificar el payload y retorna el resultado."""
        names = [event]
        if engine_id:
            names.append(tenant_event(engine_id, event))

        for name in names:
            for handler in self.handlers(name):
                result = await self._call(handler, payload)
                payload = self._coerce(name, payload, result)
        return payload

    async def trigger(
        self,
        event: str,
        payload: EnrichmentPayload,
        engine_id: Optional[str] = None,
    ) -> None:
        """Ejecuta los subscribers solo por sus efectos; el retorno se ignora."""
        names = [event]
        if engine_id:
            names.append(tenant_event(engine_id, event))

        for name in names:
            for handler in self.handlers(name):
                await self._call(handler, payload)
