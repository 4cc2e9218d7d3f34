"""Storage layer - Document store (memoria y PostgreSQL)."""

from .document_store import (
    Document,
    DocumentStore,
    MCreateError,
    MCreateResult,
    SearchResult,
)
from .memory import InMemoryDocumentStore
from .postgres import PostgresDocumentStore, ensure_schema

__all__ = [
    "Document",
    "DocumentStore",
    "MCreateError",
    "MCreateResult",
    "SearchResult",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "ensure_schema",
]
