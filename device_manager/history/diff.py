"""Diff de metadata entre dos versiones de un asset."""

from __future__ import annotations

from typing import Any, List, Mapping

_MISSING = object()


def compare_metadata(before: Mapping[str, Any], after: Mapping[str, Any], prefix: str = "") -> List[str]:
    """Claves cuyo valor cambió, con dot-path para estructuras anidadas.

    Recorre la unión de claves (agregadas y eliminadas cuentan como
    cambio). Si ambos lados son dicts se baja un nivel: un cambio en
    ``trailer.capacity`` reporta ``"trailer.capacity"``, no ``"trailer"``.

    Ejemplo:
        >>> compare_metadata({"weight": 1, "trailer": {"capacity": 2}},
        ...                  {"weight": 3, "trailer": {"capacity": 4}})
        ['weight', 'trailer.capacity']
    """
    names: List[str] = []

    keys = list(before.keys())
    keys.extend(key for key in after.keys() if key not in before)

    for key in keys:
        path = f"{prefix}{key}"
        old = before.get(key, _MISSING)
        new = after.get(key, _MISSING)

        if isinstance(old, Mapping) and isinstance(new, Mapping):
            names.extend(compare_metadata(old, new, prefix=f"{path}."))
        elif old is _MISSING or new is _MISSING or old != new:
            names.append(path)

    return names
