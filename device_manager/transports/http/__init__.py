"""Transport HTTP (FastAPI)."""

from .endpoints import router

__all__ = ["router"]
