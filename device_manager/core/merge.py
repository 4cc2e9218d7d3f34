"""Deep merge de diccionarios (metadata y updates parciales de documentos)."""

from __future__ import annotations

import copy
from typing import Any, Collection, Mapping, MutableMapping


def deep_merge(
    target: MutableMapping[str, Any],
    source: Mapping[str, Any],
    replace: Collection[str] = (),
) -> MutableMapping[str, Any]:
    """Mezcla ``source`` dentro de ``target`` in place y retorna ``target``.

    Los dicts se mezclan recursivamente; cualquier otro valor (listas
    incluidas) reemplaza al existente. Las claves entrantes ganan.

    ``replace`` lista rutas con puntos (``"measures.temperature"``) cuyo
    valor se asigna entero en lugar de mezclarse: las claves que ya no
    vienen en ``source`` desaparecen del destino.
    """
    return _merge(target, source, frozenset(replace), "")


def _merge(
    target: MutableMapping[str, Any],
    source: Mapping[str, Any],
    replace: frozenset,
    prefix: str,
) -> MutableMapping[str, Any]:
    for key, value in source.items():
        path = f"{prefix}{key}"
        current = target.get(key)
        if path in replace:
            target[key] = copy.deepcopy(value)
        elif isinstance(value, Mapping) and isinstance(current, MutableMapping):
            _merge(current, value, replace, f"{path}.")
        elif isinstance(value, Mapping):
            target[key] = _merge({}, value, replace, f"{path}.")
        else:
            target[key] = value
    return target
