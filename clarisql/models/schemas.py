"""
Pydantic models for data flowing through the clarification pipeline.
These models ensure type safety between the dialogue, generation and execution stages.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, AliasChoices


class AccessRole(str, Enum):
    """Role the current user holds on a registered database."""
    OWNER = "owner"
    READ_ONLY = "read-only"


class Speaker(str, Enum):
    """Who produced a conversation turn."""
    USER = "user"
    SYSTEM = "system"


# ============================================================
# Connection Models
# ============================================================

class DatabaseConnection(BaseModel):
    """A registered database as handed over by the registration subsystem."""
    model_config = ConfigDict(frozen=True)

    database_id: str = Field(description="Registry identifier")
    connection_string: str = Field(default="", description="Opaque connection descriptor")
    role: AccessRole = Field(default=AccessRole.OWNER, description="Access role of the user")
    name: Optional[str] = Field(default=None, description="Display name")

    @property
    def is_read_only(self) -> bool:
        return self.role == AccessRole.READ_ONLY


# ============================================================
# Schema Models
# ============================================================

class ColumnInfo(BaseModel):
    """Information about a database column."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name")
    data_type: str = Field(description="Declared SQL data type")


# ============================================================
# Dialogue Models
# ============================================================

class ConversationTurn(BaseModel):
    """One utterance in a session's conversation."""
    speaker: Speaker = Field(description="user or system")
    text: str = Field(description="What was said")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ClarificationContext(BaseModel):
    """Everything needed to resume a request once the pending question is answered."""
    model_config = ConfigDict(frozen=True)

    pending_question: str = Field(description="Question shown to the user")
    original_query: str = Field(description="Request being clarified")
    join_type: Optional[str] = Field(default=None, description="Detected join type, if any")
    duplicate_handling: bool = Field(default=False, description="Question is about duplicate rows")
    prior_sql: Optional[str] = Field(default=None, description="SQL whose result raised the question")
    prior_result_sample: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="First rows of the result that raised the question"
    )


class ClassificationResult(BaseModel):
    """Outcome of the ambiguity rules for one request."""
    needs_clarification: bool = False
    question: Optional[str] = None
    join_type: Optional[str] = None
    duplicate_handling: bool = False
    aspect: Optional[str] = None
    rule: Optional[str] = Field(default=None, description="Name of the rule that fired")


# ============================================================
# Execution Models
# ============================================================

class QueryResult(BaseModel):
    """Result of SQL execution."""
    sql: str = Field(description="The SQL that was executed")
    columns: List[str] = Field(default_factory=list, description="Column names in result")
    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Query results as list of dicts")
    duplicate_count: int = Field(default=0, description="Rows repeating an earlier row across all columns")
    success: bool = True
    truncated: bool = Field(default=False, description="More rows existed than were fetched")
    execution_time_ms: Optional[float] = Field(default=None, description="Query execution time in ms")

    @property
    def row_count(self) -> int:
        return len(self.rows)


# ============================================================
# Generation Models
# ============================================================

class GenerationRequest(BaseModel):
    """Payload for one call to the generation service."""
    schema_text: str = Field(description="Schema snapshot serialized as JSON")
    relationships_json: str = Field(description="Inferred relationships serialized as JSON")
    query_text: str = Field(description="Natural-language request")
    answer_text: Optional[str] = None
    join_type: Optional[str] = None
    aspect: Optional[str] = None
    prior_sql: Optional[str] = None
    result_sample: Optional[List[Dict[str, Any]]] = None


class GeneralCheckResult(BaseModel):
    """Structured answer of the general clarification check."""
    needs_clarification: bool = Field(
        validation_alias=AliasChoices("needs_clarification", "needsClarification")
    )
    question: Optional[str] = None


class JoinSuggestion(BaseModel):
    """One join proposed by the generation service."""
    join_type: str = Field(validation_alias=AliasChoices("join_type", "joinType"))
    description: str = ""
    tables: List[str] = Field(default_factory=list)
    conditions: str = ""


# ============================================================
# Response Models
# ============================================================

class PipelineResponse(BaseModel):
    """What one ProcessQuery call hands back to its caller."""
    success: bool = Field(description="False only when the request failed")
    message: str = Field(description="The system turn appended for this call")
    sql: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    rows: Optional[List[Dict[str, Any]]] = None
    needs_clarification: bool = False
    question: Optional[str] = None
    duplicate_count: int = 0
    truncated: bool = False
    error: Optional[str] = Field(default=None, description="Error kind when the request failed")
    error_detail: Optional[str] = Field(default=None, description="Underlying error message")
