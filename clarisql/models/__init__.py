"""Data models for the clarification pipeline."""
from .schemas import (
    AccessRole,
    Speaker,
    DatabaseConnection,
    ColumnInfo,
    ConversationTurn,
    ClarificationContext,
    ClassificationResult,
    QueryResult,
    GenerationRequest,
    GeneralCheckResult,
    JoinSuggestion,
    PipelineResponse,
)

__all__ = [
    "AccessRole",
    "Speaker",
    "DatabaseConnection",
    "ColumnInfo",
    "ConversationTurn",
    "ClarificationContext",
    "ClassificationResult",
    "QueryResult",
    "GenerationRequest",
    "GeneralCheckResult",
    "JoinSuggestion",
    "PipelineResponse",
]
