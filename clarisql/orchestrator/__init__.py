"""Orchestrator module initialization."""

from .llm_client import (
    GenerationClient,
    GenerationError,
    GenerationKind,
    LLMResponse,
    build_request,
    clean_sql,
)
from .json_utils import JSONExtractionError, extract_first_json_block, safe_parse_llm_json
from .ambiguity import (
    AmbiguityClassifier,
    AmbiguityRule,
    BrevityRule,
    JoinRule,
    DuplicateRule,
    AspectRule,
    GeneralCheckRule,
    DEFAULT_RULES,
)
from .executor import QueryExecutor, count_duplicate_rows, check_read_only
from .dialogue import (
    Idle,
    AwaitingClarification,
    DialogueState,
    ClarificationDialogue,
    SessionManager,
)
from .pipeline import Cancellation, ClarificationPipeline, merge_clarification

__all__ = [
    # Generation
    "GenerationClient",
    "GenerationError",
    "GenerationKind",
    "LLMResponse",
    "build_request",
    "clean_sql",
    "JSONExtractionError",
    "extract_first_json_block",
    "safe_parse_llm_json",
    # Ambiguity
    "AmbiguityClassifier",
    "AmbiguityRule",
    "BrevityRule",
    "JoinRule",
    "DuplicateRule",
    "AspectRule",
    "GeneralCheckRule",
    "DEFAULT_RULES",
    # Execution
    "QueryExecutor",
    "count_duplicate_rows",
    "check_read_only",
    # Dialogue
    "Idle",
    "AwaitingClarification",
    "DialogueState",
    "ClarificationDialogue",
    "SessionManager",
    "Cancellation",
    "ClarificationPipeline",
    "merge_clarification",
]
