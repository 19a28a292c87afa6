"""
Pydantic schemas for the ClariSQL API.

These models define the request/response structure for all API endpoints.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


# ============================================================
# REQUEST MODELS
# ============================================================

class QueryRequest(BaseModel):
    """Request body for POST /query."""
    query: str = Field(..., description="Natural language request, or the answer to a pending question",
                       min_length=1, max_length=2000)
    database_id: str = Field(
        default="default",
        description="Registered database identifier"
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Conversation id; a new session is started when omitted"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"query": "total sales per customer last quarter"},
                {"query": "join orders and customers", "database_id": "shop", "session_id": "3f1c..."}
            ]
        }
    }


class JoinSuggestionRequest(BaseModel):
    """Request body for POST /query/join-suggestions."""
    query: str = Field(..., min_length=1, max_length=2000)
    database_id: str = Field(default="default")


# ============================================================
# RESPONSE MODELS
# ============================================================

class QueryResponse(BaseModel):
    """Response body for POST /query."""
    success: bool = Field(..., description="False only when the request failed")
    session_id: str = Field(..., description="Conversation id to send with the next message")
    message: str = Field(..., description="System turn appended to the conversation")
    needs_clarification: bool = Field(False, description="A question is pending; answer it in the same session")
    question: Optional[str] = Field(None, description="The pending question")
    sql_used: Optional[str] = Field(None, description="SQL query executed")
    columns: List[str] = Field(default_factory=list)
    data: Optional[List[Dict[str, Any]]] = Field(None, description="Result rows")
    row_count: int = Field(0, description="Rows returned")
    duplicate_count: int = Field(0, description="Rows repeating an earlier row")
    truncated: bool = Field(False, description="More rows existed than were returned")
    error: Optional[str] = Field(None, description="Error kind if failed")
    error_detail: Optional[str] = Field(None, description="Error message if failed")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "session_id": "3f1c...",
                    "message": "Your query seems brief. Could you provide more details about what you want to know?",
                    "needs_clarification": True,
                    "question": "Your query seems brief. Could you provide more details about what you want to know?",
                },
                {
                    "success": True,
                    "session_id": "3f1c...",
                    "message": "Query processed successfully! 2 rows returned.",
                    "sql_used": "SELECT name FROM customers",
                    "columns": ["name"],
                    "data": [{"name": "Ada"}, {"name": "Grace"}],
                    "row_count": 2,
                },
            ]
        }
    }


class ConversationTurnAPI(BaseModel):
    """One turn of a conversation."""
    speaker: str
    text: str
    timestamp: datetime


class ConversationResponse(BaseModel):
    """Response for GET /sessions/{id}/conversation."""
    session_id: str
    turns: List[ConversationTurnAPI]
    awaiting_clarification: bool = False
    pending_question: Optional[str] = None


class JoinSuggestionAPI(BaseModel):
    """One suggested join."""
    join_type: str
    description: str = ""
    tables: List[str] = []
    conditions: str = ""


class JoinSuggestionsResponse(BaseModel):
    """Response for POST /query/join-suggestions."""
    database_id: str
    suggestions: List[JoinSuggestionAPI]


class DatabaseInfo(BaseModel):
    """Registered database, without its connection descriptor."""
    id: str
    type: Optional[str] = None
    role: str
    name: Optional[str] = None


class DatabaseListResponse(BaseModel):
    """Response for GET /databases."""
    databases: List[DatabaseInfo]


class TableSchema(BaseModel):
    """Schema for a single table."""
    name: str
    columns: List[Dict[str, str]]


class RelationshipAPI(BaseModel):
    """Inferred relationship: source column references target id."""
    target: str
    source: str


class SchemaResponse(BaseModel):
    """Response for GET /databases/{id}/schema."""
    database_id: str
    tables: List[TableSchema]
    relationships: List[RelationshipAPI] = []


class DatabaseStatsResponse(BaseModel):
    """Response for GET /databases/{id}/stats."""
    database_id: str
    total_queries: int = 0
    success_rate: float = 0.0
    avg_response_time_ms: float = 0.0
    last_queried: Optional[datetime] = None
    query_frequency: List[int] = []
    frequency_start: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""
    status: str = "healthy"
    version: str = "1.0.0"
    llm_model: Optional[str] = None
    database_count: int = 0
    active_sessions: int = 0
    schema_cache: Dict[str, int] = {}
