"""Recepción de payloads crudos de devices."""

from .service import PayloadService

__all__ = ["PayloadService"]
