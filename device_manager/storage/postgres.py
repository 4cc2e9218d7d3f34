"""Document store sobre PostgreSQL (JSONB).

Tabla única ``dm_documents`` particionada lógicamente por (índice,
colección). Optimistic locking con columna ``version``: un update lee,
mezcla y escribe solo si la versión no cambió; si cambió reintenta hasta
``retry_on_conflict`` veces.

SQLAlchemy es síncrono aquí; cada operación corre en ``asyncio.to_thread``
para no bloquear el event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Collection, Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ..core.merge import deep_merge
from ..errors import ConflictError, NotFoundError
from .document_store import (
    Document,
    DocumentStore,
    MCreateError,
    MCreateResult,
    SearchResult,
)
from .retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS dm_documents (
    index_name  TEXT NOT NULL,
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    body        JSONB NOT NULL,
    version     INTEGER NOT NULL DEFAULT 1,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (index_name, collection, id)
)
"""


def ensure_schema(engine: Engine) -> None:
    """Crea la tabla de documentos si no existe. Idempotente."""
    logger.info("[STORE] Ensuring dm_documents schema")
    with engine.begin() as conn:
        conn.execute(text(SCHEMA_SQL))


def _json_text(value: Any) -> str:
    # #>> devuelve texto: los booleanos JSON se comparan como 'true'/'false'
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_where(query: Optional[Dict[str, Any]], params: Dict[str, Any]) -> str:
    """Traduce una query simple a SQL sobre la columna ``body``."""
    if not query:
        return "TRUE"

    if "and" in query:
        clauses = [build_where(sub, params) for sub in query["and"]]
        return "(" + " AND ".join(clauses) + ")" if clauses else "TRUE"

    if "equals" in query:
        clauses = []
        for path, expected in query["equals"].items():
            n = len(params)
            params[f"p{n}"] = "{" + ",".join(path.split(".")) + "}"
            params[f"v{n}"] = _json_text(expected)
            clauses.append(f"(body #>> CAST(:p{n} AS TEXT[])) = :v{n}")
        return "(" + " AND ".join(clauses) + ")" if clauses else "TRUE"

    raise ValueError(f"Unsupported query: {query!r}")


class PostgresDocumentStore(DocumentStore):

    def __init__(self, engine: Engine, retry_config: Optional[RetryConfig] = None):
        self._engine = engine
        self._retry_config = retry_config or RetryConfig(
            retryable_exceptions=(ConflictError,),
        )

    # ------------------------------------------------------------------
    # Operaciones síncronas (corren en thread)
    # ------------------------------------------------------------------

    def _select(self, index: str, collection: str, document_id: str) -> Optional[Tuple[Dict[str, Any], int]]:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("""
                    SELECT body, version FROM dm_documents
                    WHERE index_name = :index AND collection = :collection AND id = :id
                """),
                {"index": index, "collection": collection, "id": document_id},
            ).fetchone()
        if row is None:
            return None
        body = row.body if isinstance(row.body, dict) else json.loads(row.body)
        return body, int(row.version)

    def _insert(self, index: str, collection: str, document_id: str, body: Dict[str, Any]) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO dm_documents (index_name, collection, id, body)
                        VALUES (:index, :collection, :id, CAST(:body AS JSONB))
                    """),
                    {
                        "index": index,
                        "collection": collection,
                        "id": document_id,
                        "body": json.dumps(body, default=str),
                    },
                )
        except IntegrityError as e:
            raise ConflictError(
                f'Document "{document_id}" already exists in "{index}":"{collection}"'
            ) from e

    def _compare_and_set(
        self,
        index: str,
        collection: str,
        document_id: str,
        body: Dict[str, Any],
        replace: Collection[str] = (),
    ) -> Dict[str, Any]:
        current = self._select(index, collection, document_id)
        if current is None:
            raise NotFoundError(f'Document "{document_id}" not found in "{index}":"{collection}"')

        source, version = current
        merged = deep_merge(source, body, replace)

        with self._engine.begin() as conn:
            result = conn.execute(
                text("""
                    UPDATE dm_documents
                    SET body = CAST(:body AS JSONB), version = version + 1, updated_at = NOW()
                    WHERE index_name = :index AND collection = :collection
                      AND id = :id AND version = :version
                """),
                {
                    "index": index,
                    "collection": collection,
                    "id": document_id,
                    "version": version,
                    "body": json.dumps(merged, default=str),
                },
            )
        if result.rowcount != 1:
            raise ConflictError(
                f'Version conflict on "{document_id}" in "{index}":"{collection}" (version={version})'
            )
        return merged

    def _search(
        self,
        index: str,
        collection: str,
        query: Optional[Dict[str, Any]],
        size: int,
        from_: int,
    ) -> SearchResult:
        params: Dict[str, Any] = {}
        where = build_where(query, params)
        params.update({"index": index, "collection": collection, "size": size, "from_": from_})

        with self._engine.connect() as conn:
            total = conn.execute(
                text(f"""
                    SELECT COUNT(*) AS cnt FROM dm_documents
                    WHERE index_name = :index AND collection = :collection AND {where}
                """),
                params,
            ).scalar_one()
            rows = conn.execute(
                text(f"""
                    SELECT id, body FROM dm_documents
                    WHERE index_name = :index AND collection = :collection AND {where}
                    ORDER BY created_at, id
                    LIMIT :size OFFSET :from_
                """),
                params,
            ).fetchall()

        hits = [
            Document(id=row.id, source=row.body if isinstance(row.body, dict) else json.loads(row.body))
            for row in rows
        ]
        return SearchResult(hits=hits, total=int(total))

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    async def get(self, index: str, collection: str, document_id: str) -> Document:
        current = await asyncio.to_thread(self._select, index, collection, document_id)
        if current is None:
            raise NotFoundError(f'Document "{document_id}" not found in "{index}":"{collection}"')
        return Document(id=document_id, source=current[0])

    async def exists(self, index: str, collection: str, document_id: str) -> bool:
        current = await asyncio.to_thread(self._select, index, collection, document_id)
        return current is not None

    async def create(
        self,
        index: str,
        collection: str,
        body: Dict[str, Any],
        document_id: Optional[str] = None,
    ) -> Document:
        document_id = document_id or uuid.uuid4().hex
        await asyncio.to_thread(self._insert, index, collection, document_id, body)
        return Document(id=document_id, source=body)

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
        config = RetryConfig(
            max_attempts=retry_on_conflict + 1,
            base_delay=self._retry_config.base_delay,
            max_delay=self._retry_config.max_delay,
            retryable_exceptions=(ConflictError,),
        )

        merged = await retry_async(
            lambda: asyncio.to_thread(
                self._compare_and_set, index, collection, document_id, body, replace,
            ),
            config,
            operation=f"update {index}:{collection}/{document_id}",
        )
        return Document(id=document_id, source=merged if source else {})

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
            except Exception as e:
                logger.warning("[STORE] m_create item failed %s:%s err=%s", index, collection, e)
                result.errors.append(MCreateError(document=body, reason=str(e), status=500))
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
        return await asyncio.to_thread(self._search, index, collection, query, size, from_)
