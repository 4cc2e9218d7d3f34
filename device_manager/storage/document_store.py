"""Contrato del document store.

Abstrae la base documental (índice → colección → documento JSON). El
pipeline de ingesta solo depende de esta interfaz:

- get / exists / create
- update parcial (deep merge) con retry_on_conflict
- m_create en bulk: los fallos por documento se retornan, no se lanzan
- search con queries ``{"equals": {...}}`` y ``{"and": [...]}``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Mapping, Optional


@dataclass
class Document:
    id: str
    source: Dict[str, Any]


@dataclass
class MCreateError:
    document: Dict[str, Any]
    reason: str
    status: int = 400


@dataclass
class MCreateResult:
    successes: List[Document] = field(default_factory=list)
    errors: List[MCreateError] = field(default_factory=list)


@dataclass
class SearchResult:
    hits: List[Document] = field(default_factory=list)
    total: int = 0


_MISSING = object()


def get_path(source: Mapping[str, Any], path: str) -> Any:
    """Resuelve ``a.b.c`` dentro de un documento. Retorna _MISSING si no existe."""
    current: Any = source
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def match_query(source: Mapping[str, Any], query: Optional[Mapping[str, Any]]) -> bool:
    """Evalúa una query simple sobre un documento."""
    if not query:
        return True

    if "and" in query:
        return all(match_query(source, sub) for sub in query["and"])

    if "equals" in query:
        return all(
            get_path(source, path) == expected
            for path, expected in query["equals"].items()
        )

    raise ValueError(f"Unsupported query: {dict(query)!r}")


class DocumentStore(ABC):
    """Interfaz async del document store."""

    @abstractmethod
    async def get(self, index: str, collection: str, document_id: str) -> Document:
        """Retorna el documento o lanza NotFoundError."""

    @abstractmethod
    async def exists(self, index: str, collection: str, document_id: str) -> bool:
        pass

    @abstractmethod
    async def create(
        self,
        index: str,
        collection: str,
        body: Dict[str, Any],
        document_id: Optional[str] = None,
    ) -> Document:
        """Crea un documento. Lanza ConflictError si el id ya existe."""

    @abstractmethod
    async def update(
        self,
        index: str,
        collection: str,
        document_id: str,
        body: Dict[str, Any],
        *,
        source: bool = True,
        retry_on_conflict: int = 0,
        replace: Collection[str] = (),
    ) -> Document:
        """Update parcial (deep merge). Lanza NotFoundError o ConflictError.

        Con ``source=False`` el documento retornado solo lleva el id.
        Las rutas de ``replace`` se sobrescriben enteras (ver ``deep_merge``).
        """

    @abstractmethod
    async def m_create(
        self,
        index: str,
        collection: str,
        bodies: List[Dict[str, Any]],
    ) -> MCreateResult:
        pass

    @abstractmethod
    async def search(
        self,
        index: str,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        *,
        size: int = 10,
        from_: int = 0,
    ) -> SearchResult:
        pass
