"""
Clarification Pipeline - ProcessQuery entry point.

PURPOSE:
========
Routes every utterance of a session through the right stages:

    Idle + request
        -> schema snapshot -> ambiguity rules
        -> question?  store context, ask, wait
        -> otherwise  generate SQL -> execute -> answer

    AwaitingClarification + answer        (never re-classified)
        -> back to Idle first
        -> join context       enhanced join SQL
        -> duplicate context  duplicate handling SQL
        -> otherwise          SQL for "<request> (Clarification: <answer>)"
        -> execute -> answer

A result containing duplicate rows triggers one more question, unless it was
itself produced from a duplicate-handling answer. That caps the duplicate
round at one per request.

FAILURES:
=========
Every failure ends with exactly one plain-language system turn (replacing the
"Processing..." placeholder when there is one), and the session is always left
Idle. A request its caller stopped waiting for is treated the same way:
its outcome is discarded and a timeout turn is written instead.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from clarisql.adapters import (
    ConnectionError,
    DatabaseError,
    EmptyQueryError,
    ExecutionError,
    IntrospectionError,
)
from clarisql.models import ClarificationContext, ConversationTurn, PipelineResponse, QueryResult
from clarisql.tools import RelationshipMap, SchemaIntrospector, SchemaSnapshot, infer_relationships
from clarisql.utils import QueryLog
from configs import RESULT_SAMPLE_ROWS

from .ambiguity import AmbiguityClassifier
from .dialogue import ClarificationDialogue, SessionManager
from .executor import QueryExecutor
from .llm_client import GenerationClient, GenerationError, GenerationKind, build_request

logger = logging.getLogger("clarisql.pipeline")


PROCESSING_MESSAGE = "Processing your query..."
CLARIFIED_PROCESSING_MESSAGE = "Processing your clarified query..."

CONNECTION_FAILED_MESSAGE = "Could not connect to the database. Please check the connection and try again."
INTROSPECTION_FAILED_MESSAGE = "Could not read the database schema. Please try again."
GENERATION_FAILED_MESSAGE = "Error analyzing your query. Please try again."
EMPTY_QUERY_MESSAGE = "Query cannot be empty. Please try again."
EXECUTION_FAILED_MESSAGE = "Database query failed. Please try again."
TIMEOUT_MESSAGE = "Query timed out. Try a simpler question."

DUPLICATE_FALLBACK_QUESTION = (
    "I noticed there are duplicate entries in the results. Would you like to keep all "
    "duplicates, remove them, or handle them in a specific way?"
)

# (error kind, user-facing message) per domain exception, most specific first
_FAILURES = (
    (EmptyQueryError, "empty_query", EMPTY_QUERY_MESSAGE),
    (ExecutionError, "execution_error", EXECUTION_FAILED_MESSAGE),
    (IntrospectionError, "introspection_error", INTROSPECTION_FAILED_MESSAGE),
    (ConnectionError, "connection_error", CONNECTION_FAILED_MESSAGE),
    (GenerationError, "generation_error", GENERATION_FAILED_MESSAGE),
)


class Cancellation:
    """
    Outcome of a request that a caller may stop waiting for.

    The worker calls finish() before committing and the caller calls cancel()
    when it gives up. Whichever comes first wins.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._outcome: Optional[str] = None

    def _settle(self, outcome: str) -> bool:
        with self._lock:
            if self._outcome is None:
                self._outcome = outcome
            return self._outcome == outcome

    def cancel(self) -> bool:
        """True when the worker has not committed yet and now never will."""
        return self._settle("cancelled")

    def finish(self) -> bool:
        return self._settle("finished")

    @property
    def cancelled(self) -> bool:
        return self._outcome == "cancelled"


def merge_clarification(original_query: str, answer: str) -> str:
    """Free-text request carrying the user's answer."""
    return f"{original_query} (Clarification: {answer})"


def success_message(result: QueryResult) -> str:
    message = f"Query processed successfully! {result.row_count} rows returned."
    if result.truncated:
        message += f" Only the first {result.row_count} rows are shown."
    return message


class ClarificationPipeline:
    """
    Conducts clarification dialogues and runs the resulting SQL.

    All collaborators are injected; build the production wiring with
    clarisql.api.deps.get_pipeline().
    """

    def __init__(
        self,
        introspector: SchemaIntrospector,
        generator: GenerationClient,
        executor: QueryExecutor,
        classifier: Optional[AmbiguityClassifier] = None,
        sessions: Optional[SessionManager] = None,
        query_log: Optional[QueryLog] = None,
        sample_rows: int = RESULT_SAMPLE_ROWS,
    ):
        self.introspector = introspector
        self.generator = generator
        self.executor = executor
        self.classifier = classifier or AmbiguityClassifier(generator)
        self.sessions = sessions or SessionManager()
        self.query_log = query_log or QueryLog()
        self.sample_rows = sample_rows

    # ============================================================
    # PUBLIC API
    # ============================================================

    def process_query(
        self,
        session_id: str,
        database_id: str,
        text: str,
        cancellation: Optional[Cancellation] = None,
    ) -> PipelineResponse:
        """
        Handle one utterance of a session.

        While a question is pending, text is always taken as its answer.
        If the caller cancels before the outcome is committed, the session
        ends Idle with a timeout turn instead.
        """
        dialogue = self.sessions.get_or_create(session_id)
        with dialogue.lock:
            if cancellation is not None and cancellation.cancelled:
                dialogue.add_user_turn(text)
                return self._time_out(dialogue, database_id)

            if dialogue.is_awaiting:
                response = self._handle_answer(dialogue, database_id, text)
            else:
                response = self._handle_request(dialogue, database_id, text)

            if cancellation is not None and not cancellation.finish():
                return self._time_out(dialogue, database_id)
            return response

    def conversation(self, session_id: str) -> List[ConversationTurn]:
        """Copy of a session's turns (empty for an unknown session)."""
        dialogue = self.sessions.get(session_id)
        return dialogue.export() if dialogue else []

    def abandon(self, session_id: str) -> bool:
        return self.sessions.remove(session_id)

    # ============================================================
    # STAGES
    # ============================================================

    def _handle_request(self, dialogue: ClarificationDialogue, database_id: str, text: str) -> PipelineResponse:
        dialogue.add_user_turn(text)

        try:
            snapshot, relationships = self._load_schema(database_id)
        except DatabaseError as e:
            return self._fail(dialogue, database_id, e)

        classification = self.classifier.classify(text, snapshot, relationships)
        if classification.needs_clarification:
            context = ClarificationContext(
                pending_question=classification.question,
                original_query=text,
                join_type=classification.join_type,
                duplicate_handling=classification.duplicate_handling,
            )
            dialogue.add_system_turn(context.pending_question)
            dialogue.await_answer(context)
            return PipelineResponse(
                success=True,
                message=context.pending_question,
                needs_clarification=True,
                question=context.pending_question,
            )

        dialogue.add_system_turn(PROCESSING_MESSAGE)
        return self._generate_and_execute(
            dialogue, database_id, snapshot, relationships,
            request_text=text,
            produce_sql=lambda: self.generator.generate(
                GenerationKind.SQL_FROM_QUERY,
                build_request(snapshot, relationships, text),
            ),
            allow_duplicate_round=True,
        )

    def _handle_answer(self, dialogue: ClarificationDialogue, database_id: str, answer: str) -> PipelineResponse:
        context = dialogue.take_context()
        dialogue.add_user_turn(answer)
        dialogue.add_system_turn(CLARIFIED_PROCESSING_MESSAGE)

        try:
            snapshot, relationships = self._load_schema(database_id)
        except DatabaseError as e:
            return self._fail(dialogue, database_id, e)

        merged = merge_clarification(context.original_query, answer)

        def merged_sql() -> str:
            return self.generator.generate(
                GenerationKind.SQL_FROM_QUERY,
                build_request(snapshot, relationships, merged),
            )

        if context.join_type:
            kind = GenerationKind.ENHANCED_JOIN_SQL
            request = build_request(
                snapshot, relationships, context.original_query,
                answer_text=answer, join_type=context.join_type,
            )
        elif context.duplicate_handling:
            kind = GenerationKind.DUPLICATE_HANDLING_SQL
            request = build_request(
                snapshot, relationships, context.original_query,
                answer_text=answer, prior_sql=context.prior_sql,
                result_sample=context.prior_result_sample,
            )
        else:
            kind, request = None, None

        def produce_sql() -> str:
            if kind is None:
                return merged_sql()
            try:
                return self.generator.generate(kind, request)
            except GenerationError as e:
                logger.warning("%s failed, retrying as free-text clarification: %s", kind.value, e)
                return merged_sql()

        return self._generate_and_execute(
            dialogue, database_id, snapshot, relationships,
            request_text=merged,
            produce_sql=produce_sql,
            allow_duplicate_round=not context.duplicate_handling,
        )

    def _generate_and_execute(
        self,
        dialogue: ClarificationDialogue,
        database_id: str,
        snapshot: SchemaSnapshot,
        relationships: RelationshipMap,
        request_text: str,
        produce_sql: Callable[[], str],
        allow_duplicate_round: bool,
    ) -> PipelineResponse:
        start = time.time()
        sql = None
        try:
            sql = produce_sql()
            result = self.executor.execute(database_id, sql)
        except (GenerationError, DatabaseError) as e:
            self._record(database_id, False, start)
            return self._fail(dialogue, database_id, e, sql=sql)
        self._record(database_id, True, start)

        if result.duplicate_count > 0 and allow_duplicate_round:
            return self._ask_about_duplicates(dialogue, snapshot, relationships, request_text, result)

        message = success_message(result)
        dialogue.update_last_system_turn(message)
        return PipelineResponse(
            success=True,
            message=message,
            sql=result.sql,
            columns=result.columns,
            rows=result.rows,
            duplicate_count=result.duplicate_count,
            truncated=result.truncated,
        )

    def _ask_about_duplicates(
        self,
        dialogue: ClarificationDialogue,
        snapshot: SchemaSnapshot,
        relationships: RelationshipMap,
        request_text: str,
        result: QueryResult,
    ) -> PipelineResponse:
        sample = result.rows[:self.sample_rows]
        try:
            question = self.generator.generate(
                GenerationKind.DUPLICATE_CLARIFICATION_QUESTION,
                build_request(
                    snapshot, relationships, request_text,
                    prior_sql=result.sql, result_sample=sample,
                ),
            )
        except GenerationError as e:
            logger.warning("Duplicate question generation failed, using template: %s", e)
            question = DUPLICATE_FALLBACK_QUESTION

        message = f"I found {result.duplicate_count} duplicate rows in the results. {question}"
        dialogue.update_last_system_turn(message)
        dialogue.await_answer(ClarificationContext(
            pending_question=message,
            original_query=request_text,
            duplicate_handling=True,
            prior_sql=result.sql,
            prior_result_sample=sample,
        ))
        logger.info("Session %s: asking about %d duplicate rows", dialogue.session_id, result.duplicate_count)

        return PipelineResponse(
            success=True,
            message=message,
            sql=result.sql,
            columns=result.columns,
            rows=result.rows,
            needs_clarification=True,
            question=message,
            duplicate_count=result.duplicate_count,
            truncated=result.truncated,
        )

    # ============================================================
    # HELPERS
    # ============================================================

    def _load_schema(self, database_id: str) -> Tuple[SchemaSnapshot, RelationshipMap]:
        snapshot = self.introspector.get_schema(database_id)
        return snapshot, infer_relationships(snapshot)

    def _record(self, database_id: str, success: bool, start: float) -> None:
        self.query_log.record(database_id, success=success, response_time_ms=(time.time() - start) * 1000)

    def _fail(
        self,
        dialogue: ClarificationDialogue,
        database_id: str,
        error: Exception,
        sql: Optional[str] = None,
    ) -> PipelineResponse:
        for error_type, kind, message in _FAILURES:
            if isinstance(error, error_type):
                break
        else:
            raise error

        logger.warning("Session %s on '%s' failed (%s): %s", dialogue.session_id, database_id, kind, error)
        dialogue.reset()
        dialogue.update_last_system_turn(message)
        return PipelineResponse(
            success=False,
            message=message,
            sql=sql or None,
            error=kind,
            error_detail=str(error),
        )

    def _time_out(self, dialogue: ClarificationDialogue, database_id: str) -> PipelineResponse:
        logger.warning("Session %s on '%s' timed out, outcome discarded", dialogue.session_id, database_id)
        dialogue.reset()
        dialogue.update_last_system_turn(TIMEOUT_MESSAGE)
        return PipelineResponse(
            success=False,
            message=TIMEOUT_MESSAGE,
            error="timeout",
            error_detail="Request cancelled by the caller",
        )
