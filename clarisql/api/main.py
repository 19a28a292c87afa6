"""
ClariSQL FastAPI Application.

This module provides the REST API layer for the clarification pipeline.
All business logic is delegated to the pipeline; no SQL or LLM logic here.

Endpoints:
- POST   /query                              - Send a request or an answer
- POST   /query/join-suggestions             - Candidate joins for a request
- GET    /sessions/{id}/conversation         - Conversation export
- DELETE /sessions/{id}                      - Abandon a session
- GET    /databases                          - Registered databases
- GET    /databases/{id}/schema              - Schema and inferred relationships
- GET    /databases/{id}/stats               - Query statistics
- GET    /health                             - Health check

Run with:
    uvicorn clarisql.api.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clarisql import __version__
from configs import LLM_MODEL

from .deps import get_registry, logger, ALLOWED_ORIGINS
from .routers import query_router, databases_router, system_router


# ============================================================
# APP LIFECYCLE
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    registry = get_registry()
    if len(registry) == 0:
        logger.warning("No databases registered. Set DATABASE_URL, DATABASE_PATH or REGISTERED_DATABASES.")
    for connection in registry.list():
        logger.info("Database '%s' available (%s)", connection.database_id, connection.role.value)
    logger.info("ClariSQL API started (model: %s)", LLM_MODEL)
    yield
    logger.info("ClariSQL API shutting down.")


# ============================================================
# FASTAPI APP
# ============================================================

app = FastAPI(
    title="ClariSQL API",
    description="Natural-language to SQL with clarification dialogue",
    version=__version__,
    lifespan=lifespan
)

# CORS for frontend - configurable via environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(query_router)
app.include_router(databases_router)
