"""
Query Executor.

Runs generated SQL against a registered database and reports how many
returned rows are exact repeats of an earlier row. The dialogue controller
uses that count to decide whether to ask about duplicate handling.
"""

import logging
import re
import time
from typing import Any, Callable, Iterable, Optional

from clarisql.adapters import (
    DatabaseAdapter,
    EmptyQueryError,
    ExecutionError,
    create_adapter,
)
from clarisql.db_connection import DatabaseRegistry
from clarisql.models import QueryResult
from configs import EXECUTION_TIMEOUT_SECONDS, FORBIDDEN_KEYWORDS, MAX_RESULT_ROWS

logger = logging.getLogger("clarisql.executor")

_FORBIDDEN_RE = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)


def _row_key(row: Iterable[Any]) -> tuple:
    key = []
    for value in row:
        try:
            hash(value)
            key.append(value)
        except TypeError:
            # json/array columns come back as lists or dicts
            key.append(repr(value))
    return tuple(key)


def count_duplicate_rows(rows: Iterable[Iterable[Any]]) -> int:
    """Number of rows identical, across every selected column, to an earlier row."""
    seen = set()
    duplicates = 0
    for row in rows:
        key = _row_key(row)
        if key in seen:
            duplicates += 1
        else:
            seen.add(key)
    return duplicates


def check_read_only(sql: str) -> None:
    """
    Reject write statements before they reach a read-only connection.

    Raises:
        ExecutionError: If the SQL contains a forbidden keyword
    """
    match = _FORBIDDEN_RE.search(sql)
    if match:
        raise ExecutionError(
            f"access denied: {match.group(1).upper()} is not allowed on a read-only connection"
        )


class QueryExecutor:
    """Executes SQL for registered databases, one short-lived connection per call."""

    def __init__(
        self,
        registry: DatabaseRegistry,
        adapter_factory: Callable[..., DatabaseAdapter] = create_adapter,
        timeout: Optional[float] = None,
        max_rows: int = MAX_RESULT_ROWS,
    ):
        self.registry = registry
        self.adapter_factory = adapter_factory
        self.timeout = timeout if timeout is not None else EXECUTION_TIMEOUT_SECONDS
        self.max_rows = max_rows

    def execute(self, database_id: str, sql: Optional[str]) -> QueryResult:
        """
        Execute SQL and return its rows with the duplicate count.

        Raises:
            EmptyQueryError: sql is empty or whitespace (the database is not touched)
            ConnectionError: Unknown database, missing descriptor, or connect failure
            ExecutionError: The database rejected the statement, or access was denied
        """
        if not sql or not sql.strip():
            raise EmptyQueryError("Query cannot be empty")
        sql = sql.strip()

        connection = self.registry.require(database_id)
        if connection.is_read_only:
            check_read_only(sql)

        start = time.time()
        adapter = self.adapter_factory(
            connection.connection_string,
            read_only=connection.is_read_only,
            timeout=self.timeout,
        )
        with adapter:
            result_set = adapter.execute(sql, max_rows=self.max_rows)
        execution_time_ms = (time.time() - start) * 1000

        duplicate_count = count_duplicate_rows(result_set.rows)
        logger.info(
            "Executed on '%s': %d rows (%d duplicates) in %.1fms",
            database_id, len(result_set.rows), duplicate_count, execution_time_ms,
        )

        return QueryResult(
            sql=sql,
            columns=result_set.columns,
            rows=result_set.records(),
            duplicate_count=duplicate_count,
            success=True,
            truncated=result_set.truncated,
            execution_time_ms=execution_time_ms,
        )
