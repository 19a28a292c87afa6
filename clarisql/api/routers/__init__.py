from .query import router as query_router
from .databases import router as databases_router
from .system import router as system_router

__all__ = ["query_router", "databases_router", "system_router"]
