"""
Database router - list registered databases and inspect them.

Endpoints:
- GET /databases               - List registered databases (no descriptors)
- GET /databases/{id}/schema   - Tables, columns and inferred relationships
- GET /databases/{id}/stats    - Query log statistics
"""

import asyncio

from fastapi import APIRouter, HTTPException, status

from clarisql.adapters import ConnectionError, IntrospectionError, detect_database_type
from clarisql.tools import infer_relationships

from ..schemas import (
    DatabaseInfo, DatabaseListResponse,
    SchemaResponse, TableSchema, RelationshipAPI,
    DatabaseStatsResponse,
)
from ..deps import get_pipeline, get_registry, logger


router = APIRouter(prefix="/databases", tags=["Databases"])


def _require_database(database_id: str) -> None:
    if database_id not in get_registry():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Database '{database_id}' not registered",
        )


def _engine(connection_string: str):
    try:
        return detect_database_type(connection_string).value
    except ConnectionError:
        return None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=DatabaseListResponse)
async def list_databases():
    """List all registered databases."""
    databases = [
        DatabaseInfo(
            id=db.database_id,
            type=_engine(db.connection_string),
            role=db.role.value,
            name=db.name,
        )
        for db in get_registry().list()
    ]
    return DatabaseListResponse(databases=databases)


@router.get("/{database_id}/schema", response_model=SchemaResponse)
async def get_database_schema(database_id: str, refresh: bool = False):
    """
    Get schema information for a registered database.

    Served from the schema cache; pass refresh=true to re-read the catalog.
    """
    _require_database(database_id)
    pipeline = get_pipeline()

    if refresh:
        pipeline.introspector.evict(database_id)

    try:
        snapshot = await asyncio.to_thread(pipeline.introspector.get_schema, database_id)
    except ConnectionError as e:
        logger.warning("Schema for '%s' unavailable: %s", database_id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not connect to database '{database_id}'",
        )
    except IntrospectionError:
        logger.exception("Failed to read schema for database '%s'", database_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read schema",
        )

    relationships = infer_relationships(snapshot)
    return SchemaResponse(
        database_id=database_id,
        tables=[
            TableSchema(name=name, columns=columns)
            for name, columns in snapshot.to_dict().items()
        ],
        relationships=[RelationshipAPI(**r) for r in relationships.to_list()],
    )


@router.get("/{database_id}/stats", response_model=DatabaseStatsResponse)
async def get_database_stats(database_id: str):
    """Usage statistics for a registered database."""
    _require_database(database_id)
    stats = get_pipeline().query_log.stats(database_id)
    return DatabaseStatsResponse(database_id=database_id, **stats)
