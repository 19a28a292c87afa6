"""
System router - health check.

Endpoints:
- GET /health - Health check (always available)
"""

from fastapi import APIRouter

from clarisql import __version__
from configs import LLM_MODEL

from ..schemas import HealthResponse
from ..deps import get_pipeline, get_registry


router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and configuration status."""
    pipeline = get_pipeline()
    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_model=LLM_MODEL,
        database_count=len(get_registry()),
        active_sessions=len(pipeline.sessions),
        schema_cache=pipeline.introspector.cache.stats(),
    )
