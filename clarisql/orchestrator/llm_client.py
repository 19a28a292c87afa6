"""
Query Generation Client.

PURPOSE:
========
Single gateway to the generation service (an LLM reached through LiteLLM).
Every request the pipeline makes to the model goes through
GenerationClient.generate(kind, request): SQL generation, clarification
questions and the structured checks.

CONTRACT:
=========
- Exactly one outbound completion call per invocation, bounded by
  GENERATION_TIMEOUT_SECONDS. No retries, no provider fallback: callers
  decide what a failure means (most have a templated fallback).
- Any provider failure (HTTP error, timeout, network) raises GenerationError.
- Structured kinds are parsed and validated with pydantic; a response that
  does not validate also raises GenerationError.

USAGE:
======
    client = GenerationClient()
    request = GenerationRequest(
        schema_text=snapshot.to_json(),
        relationships_json=relationships.to_json(),
        query_text="total sales per customer last quarter",
    )
    sql = client.generate(GenerationKind.SQL_FROM_QUERY, request)
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from litellm import completion
from pydantic import TypeAdapter, ValidationError

from clarisql.models import GenerationRequest, GeneralCheckResult, JoinSuggestion
from configs import GENERATION_PROMPTS, GENERATION_TIMEOUT_SECONDS, LLM_MODEL, MAX_LLM_TOKENS

from .json_utils import JSONExtractionError, safe_parse_llm_json

logger = logging.getLogger("clarisql.generation")


# ============================================================
# DATA MODELS
# ============================================================

class GenerationKind(str, Enum):
    """What a generation call is asked to produce."""
    SQL_FROM_QUERY = "sql-from-query"
    CLARIFICATION_QUESTION = "clarification-question"
    JOIN_CLARIFICATION_QUESTION = "join-clarification-question"
    GENERAL_CLARIFICATION_CHECK = "general-clarification-check"
    ENHANCED_JOIN_SQL = "enhanced-join-sql"
    DUPLICATE_HANDLING_SQL = "duplicate-handling-sql"
    DUPLICATE_CLARIFICATION_QUESTION = "duplicate-clarification-question"
    JOIN_SUGGESTIONS = "join-suggestions"


SQL_KINDS = frozenset({
    GenerationKind.SQL_FROM_QUERY,
    GenerationKind.ENHANCED_JOIN_SQL,
    GenerationKind.DUPLICATE_HANDLING_SQL,
})

QUESTION_KINDS = frozenset({
    GenerationKind.CLARIFICATION_QUESTION,
    GenerationKind.JOIN_CLARIFICATION_QUESTION,
    GenerationKind.DUPLICATE_CLARIFICATION_QUESTION,
})

# Questions read better with a little variety; SQL and JSON should not vary
_TEMPERATURES = {
    GenerationKind.SQL_FROM_QUERY: 0.2,
    GenerationKind.ENHANCED_JOIN_SQL: 0.2,
    GenerationKind.DUPLICATE_HANDLING_SQL: 0.2,
    GenerationKind.CLARIFICATION_QUESTION: 0.3,
    GenerationKind.JOIN_CLARIFICATION_QUESTION: 0.3,
    GenerationKind.DUPLICATE_CLARIFICATION_QUESTION: 0.3,
    GenerationKind.GENERAL_CLARIFICATION_CHECK: 0.1,
    GenerationKind.JOIN_SUGGESTIONS: 0.2,
}

_SQL_FENCE_RE = re.compile(r'```(?:sql)?\s*([\s\S]*?)\s*```', re.IGNORECASE)

_JOIN_SUGGESTIONS = TypeAdapter(List[JoinSuggestion])


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    kind: GenerationKind
    model: str
    tokens_used: int = 0
    latency_ms: float = 0.0


class GenerationError(Exception):
    """The generation service was unreachable or returned an unusable response."""
    pass


# ============================================================
# CLIENT
# ============================================================

class GenerationClient:
    """
    LiteLLM-backed client for every generation kind.

    Args:
        model: LiteLLM model string (e.g. "gemini/gemini-2.0-flash")
        timeout: Seconds allowed for one call
        max_tokens: Completion token cap
        prompts: kind value -> prompt template
        completion_fn: Replaces litellm.completion (used by tests)
    """

    def __init__(
        self,
        model: str = LLM_MODEL,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
        max_tokens: int = MAX_LLM_TOKENS,
        prompts: Optional[Dict[str, str]] = None,
        completion_fn: Optional[Callable[..., Any]] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.prompts = prompts or GENERATION_PROMPTS
        self._completion = completion_fn
        self.call_count = 0

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    def generate(self, kind: GenerationKind, request: GenerationRequest) -> str:
        """
        Run one generation call and return its text.

        SQL kinds come back without code fences or a trailing semicolon and
        may be empty (the executor rejects empty SQL). Question kinds must be
        non-empty.

        Raises:
            GenerationError: On any provider failure, or an empty question
        """
        kind = GenerationKind(kind)
        response = self._call(kind, self.render_prompt(kind, request))
        text = response.content.strip()

        if kind in SQL_KINDS:
            return clean_sql(text)
        if kind in QUESTION_KINDS and not text:
            raise GenerationError(f"{kind.value} returned an empty question")
        return text

    def check_general_clarification(self, request: GenerationRequest) -> GeneralCheckResult:
        """
        Ask whether a request needs clarification at all.

        Raises:
            GenerationError: Provider failure or a response that is not a valid check result
        """
        raw = self.generate(GenerationKind.GENERAL_CLARIFICATION_CHECK, request)
        try:
            parsed, _ = safe_parse_llm_json(raw, expected=dict)
            return GeneralCheckResult.model_validate(parsed)
        except (JSONExtractionError, ValidationError) as e:
            raise GenerationError(f"Malformed general clarification check: {e}") from e

    def suggest_joins(self, request: GenerationRequest) -> List[JoinSuggestion]:
        """
        Ask for candidate joins answering the request.

        Raises:
            GenerationError: Provider failure or a response that is not a list of suggestions
        """
        raw = self.generate(GenerationKind.JOIN_SUGGESTIONS, request)
        try:
            parsed, _ = safe_parse_llm_json(raw, expected=list)
            return _JOIN_SUGGESTIONS.validate_python(parsed)
        except (JSONExtractionError, ValidationError) as e:
            raise GenerationError(f"Malformed join suggestions: {e}") from e

    def render_prompt(self, kind: GenerationKind, request: GenerationRequest) -> str:
        template = self.prompts.get(GenerationKind(kind).value)
        if template is None:
            raise GenerationError(f"No prompt template configured for {kind}")
        return template.format(
            schema=request.schema_text,
            relationships=request.relationships_json,
            query=request.query_text,
            answer=request.answer_text or "",
            join_type=request.join_type or "join",
            aspect=request.aspect or "details",
            prior_sql=request.prior_sql or "(none)",
            result_sample=json.dumps(request.result_sample or [], default=str),
        )

    # --------------------------------------------------------
    # Internals
    # --------------------------------------------------------

    def _call(self, kind: GenerationKind, prompt: str) -> LLMResponse:
        completion_fn = self._completion or completion
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": _TEMPERATURES[kind],
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        if kind == GenerationKind.GENERAL_CLARIFICATION_CHECK:
            kwargs["response_format"] = {"type": "json_object"}

        self.call_count += 1
        start = time.time()
        try:
            raw = completion_fn(**kwargs)
            content = raw.choices[0].message.content or ""
        except Exception as e:
            logger.warning("Generation call %s failed: %s", kind.value, e)
            raise GenerationError(f"{kind.value} call failed: {e}") from e

        usage = getattr(raw, "usage", None)
        response = LLMResponse(
            content=content,
            kind=kind,
            model=self.model,
            tokens_used=getattr(usage, "total_tokens", 0) or 0,
            latency_ms=(time.time() - start) * 1000,
        )
        logger.info("Generation %s: %d tokens in %.0fms", kind.value, response.tokens_used, response.latency_ms)
        return response


def build_request(snapshot, relationships, query_text: str, **fields: Any) -> GenerationRequest:
    """GenerationRequest carrying a schema snapshot and its relationship map as JSON."""
    return GenerationRequest(
        schema_text=snapshot.to_json(),
        relationships_json=relationships.to_json(),
        query_text=query_text,
        **fields,
    )


def clean_sql(text: str) -> str:
    """Strip Markdown code fences and trailing semicolons from generated SQL."""
    fence = _SQL_FENCE_RE.search(text)
    if fence:
        text = fence.group(1)
    return text.strip().rstrip(";").strip()
