"""
Query router - runs the clarification dialogue.

Endpoints:
- POST   /query                            - Send a request (or the answer to a pending question)
- POST   /query/join-suggestions           - Ask for candidate joins for a request
- GET    /sessions/{session_id}/conversation - Export a session's turns
- DELETE /sessions/{session_id}            - Abandon a session
"""

import asyncio
import uuid

from fastapi import APIRouter, HTTPException, status

from clarisql.adapters import DatabaseError
from clarisql.orchestrator import Cancellation, GenerationError, build_request
from clarisql.tools import infer_relationships

from ..schemas import (
    QueryRequest, QueryResponse,
    ConversationResponse, ConversationTurnAPI,
    JoinSuggestionRequest, JoinSuggestionsResponse, JoinSuggestionAPI,
)
from ..deps import get_pipeline, get_registry, logger, QUERY_TIMEOUT_SECONDS


router = APIRouter(tags=["Query"])


# =============================================================================
# HELPERS
# =============================================================================

def _require_database(database_id: str) -> None:
    if database_id not in get_registry():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Database '{database_id}' not registered",
        )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/query", response_model=QueryResponse)
async def execute_query(request: QueryRequest):
    """
    Process one message of a conversation.

    A fresh request is checked for ambiguity first; if a question comes back,
    send the answer in the same session and the query runs with it.

    Uses async thread offloading to avoid blocking the event loop
    and enforces a configurable timeout. A request that times out is
    cancelled: its session is left Idle with a timeout turn.
    """
    _require_database(request.database_id)
    session_id = request.session_id or uuid.uuid4().hex

    try:
        pipeline = get_pipeline()

        # Run the synchronous pipeline in a thread pool so we don't
        # block the async event loop, and wrap with a timeout.
        cancellation = Cancellation()
        task = asyncio.ensure_future(asyncio.to_thread(
            pipeline.process_query, session_id, request.database_id, request.query, cancellation,
        ))
        done, _ = await asyncio.wait({task}, timeout=QUERY_TIMEOUT_SECONDS)
        if not done and cancellation.cancel():
            # The worker thread runs on but discards its outcome
            task.cancel()
            raise asyncio.TimeoutError

        # Done, or committed just as the guard fired
        response = await task

        return QueryResponse(
            success=response.success,
            session_id=session_id,
            message=response.message,
            needs_clarification=response.needs_clarification,
            question=response.question,
            sql_used=response.sql,
            columns=response.columns,
            data=response.rows,
            row_count=len(response.rows or []),
            duplicate_count=response.duplicate_count,
            truncated=response.truncated,
            error=response.error,
            error_detail=response.error_detail,
        )

    except asyncio.TimeoutError:
        logger.error("Query timed out after %gs: %s", QUERY_TIMEOUT_SECONDS, request.query[:100])
        return QueryResponse(
            success=False,
            session_id=session_id,
            message=f"Query timed out after {QUERY_TIMEOUT_SECONDS:g} seconds. Try a simpler question.",
            error="timeout",
        )

    except Exception:
        # Log the full error internally, return sanitized message to client
        logger.exception("Query failed: %s", request.query[:100])
        return QueryResponse(
            success=False,
            session_id=session_id,
            message="An internal error occurred while processing your query. Please try again.",
            error="internal_error",
        )


@router.post("/query/join-suggestions", response_model=JoinSuggestionsResponse)
async def suggest_joins(request: JoinSuggestionRequest):
    """Suggest joins (type, tables, conditions) that could answer a request."""
    _require_database(request.database_id)
    pipeline = get_pipeline()

    def _suggest():
        snapshot = pipeline.introspector.get_schema(request.database_id)
        relationships = infer_relationships(snapshot)
        return pipeline.generator.suggest_joins(build_request(snapshot, relationships, request.query))

    try:
        suggestions = await asyncio.wait_for(asyncio.to_thread(_suggest), timeout=QUERY_TIMEOUT_SECONDS)
    except DatabaseError as e:
        logger.warning("Join suggestions for '%s' failed: %s", request.database_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except (GenerationError, asyncio.TimeoutError) as e:
        logger.warning("Join suggestions unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Join suggestions are unavailable right now. Please try again.",
        )

    return JoinSuggestionsResponse(
        database_id=request.database_id,
        suggestions=[JoinSuggestionAPI(**s.model_dump()) for s in suggestions],
    )


@router.get("/sessions/{session_id}/conversation", response_model=ConversationResponse)
async def get_conversation(session_id: str):
    """Export the turns of a session, oldest first."""
    dialogue = get_pipeline().sessions.get(session_id)
    if dialogue is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )

    context = dialogue.context
    return ConversationResponse(
        session_id=session_id,
        turns=[
            ConversationTurnAPI(speaker=turn.speaker.value, text=turn.text, timestamp=turn.timestamp)
            for turn in dialogue.export()
        ],
        awaiting_clarification=context is not None,
        pending_question=context.pending_question if context else None,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_session(session_id: str):
    """Drop a session; any pending question is discarded."""
    if not get_pipeline().abandon(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )
