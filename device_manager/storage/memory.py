"""Document store en memoria.

Usado en tests y ejecuciones locales sin PostgreSQL. Las operaciones no
ceden el control al event loop entre lectura y escritura, así que cada
operación es atómica respecto de las demás coroutines.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Collection, Dict, List, Optional, Tuple

from ..core.merge import deep_merge
from ..errors import ConflictError, NotFoundError
from .document_store import (
    Document,
    DocumentStore,
    MCreateError,
    MCreateResult,
    SearchResult,
    match_query,
)

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


class InMemoryDocumentStore(DocumentStore):

    def __init__(self) -> None:
        # (index, collection) → id → (version, source)
        self._collections: Dict[_Key, Dict[str, Tuple[int, Dict[str, Any]]]] = {}

    def _collection(self, index: str, collection: str) -> Dict[str, Tuple[int, Dict[str, Any]]]:
        return self._collections.setdefault((index, collection), {})

    def put(self, index: str, collection: str, document_id: str, body: Dict[str, Any]) -> None:
        """Escribe un documento sin pasar por la API async (fixtures, seeds)."""
        docs = self._collection(index, collection)
        version = docs[document_id][0] + 1 if document_id in docs else 1
        docs[document_id] = (version, copy.deepcopy(body))

    def count(self, index: str, collection: str) -> int:
        return len(self._collection(index, collection))

    def all(self, index: str, collection: str) -> List[Document]:
        return [
            Document(id=doc_id, source=copy.deepcopy(source))
            for doc_id, (_, source) in self._collection(index, collection).items()
        ]

    async def get(self, index: str, collection: str, document_id: str) -> Document:
        docs = self._collection(index, collection)
        if document_id not in docs:
            raise NotFoundError(f'Document "{document_id}" not found in "{index}":"{collection}"')
        return Document(id=document_id, source=copy.deepcopy(docs[document_id][1]))

    async def exists(self, index: str, collection: str, document_id: str) -> bool:
        return document_id in self._collection(index, collection)

    async def create(
        self,
        index: str,
        collection: str,
        body: Dict[str, Any],
        document_id: Optional[str] = None,
    ) -> Document:
        docs = self._collection(index, collection)
        document_id = document_id or uuid.uuid4().hex
        if document_id in docs:
            raise ConflictError(f'Document "{document_id}" already exists in "{index}":"{collection}"')
        docs[document_id] = (1, copy.deepcopy(body))
        return Document(id=document_id, source=copy.deepcopy(body))

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
        docs = self._collection(index, collection)
        if document_id not in docs:
            raise NotFoundError(f'Document "{document_id}" not found in "{index}":"{collection}"')

        version, current = docs[document_id]
        merged = deep_merge(copy.deepcopy(current), copy.deepcopy(body), replace)
        docs[document_id] = (version + 1, merged)

        logger.debug(
            "[STORE] update %s:%s/%s version=%d",
            index, collection, document_id, version + 1,
        )
        return Document(id=document_id, source=copy.deepcopy(merged) if source else {})

    async def m_create(
        self,
        index: str,
        collection: str,
        bodies: List[Dict[str, Any]],
    ) -> MCreateResult:
        result = MCreateResult()
        for body in bodies:
            try:
                result.successes.append(await self.create(index, collection, body))
            except ConflictError as e:
                result.errors.append(MCreateError(document=body, reason=str(e), status=409))
        return result

    async def search(
        self,
        index: str,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        *,
        size: int = 10,
        from_: int = 0,
    ) -> SearchResult:
        matches = [
            Document(id=doc_id, source=copy.deepcopy(source))
            for doc_id, (_, source) in self._collection(index, collection).items()
            if match_query(source, query)
        ]
        return SearchResult(hits=matches[from_:from_ + size], total=len(matches))
