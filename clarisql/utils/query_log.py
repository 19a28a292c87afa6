"""
Per-database query log and usage statistics.

Every executed (or failed) request is recorded with its response time so the
databases view can show how a database is being used:

    log = QueryLog()
    log.record("default", success=True, response_time_ms=42.0)
    log.stats("default")
    # {"total_queries": 1, "success_rate": 100.0, "avg_response_time_ms": 42.0, ...}
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, List, Optional, Any

logger = logging.getLogger("clarisql.query_log")

# Entries kept per database
MAX_ENTRIES_PER_DATABASE = 10_000

# Days covered by the frequency histogram
FREQUENCY_WINDOW_DAYS = 7


@dataclass
class QueryLogEntry:
    """One recorded request."""
    database_id: str
    success: bool
    response_time_ms: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class QueryLog:
    """Bounded in-memory log of request outcomes, grouped by database."""

    def __init__(self, max_entries: int = MAX_ENTRIES_PER_DATABASE):
        self._entries: Dict[str, Deque[QueryLogEntry]] = {}
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def record(self, database_id: str, success: bool, response_time_ms: float,
               timestamp: Optional[datetime] = None) -> QueryLogEntry:
        entry = QueryLogEntry(
            database_id=database_id,
            success=success,
            response_time_ms=response_time_ms,
        )
        if timestamp is not None:
            entry.timestamp = timestamp
        with self._lock:
            self._entries.setdefault(database_id, deque(maxlen=self._max_entries)).append(entry)
        logger.debug("Logged %s query on '%s' (%.1fms)",
                     "successful" if success else "failed", database_id, response_time_ms)
        return entry

    def entries(self, database_id: str) -> List[QueryLogEntry]:
        with self._lock:
            return list(self._entries.get(database_id, ()))

    def stats(self, database_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Usage summary for one database.

        Returns:
            total_queries, success_rate (percent), avg_response_time_ms,
            last_queried (or None) and query_frequency: counts for each of the
            last FREQUENCY_WINDOW_DAYS days, oldest first, today last.
        """
        entries = self.entries(database_id)
        now = now or datetime.now(timezone.utc)

        total = len(entries)
        successes = sum(1 for e in entries if e.success)

        today = now.date()
        frequency = [0] * FREQUENCY_WINDOW_DAYS
        for entry in entries:
            age = (today - entry.timestamp.date()).days
            if 0 <= age < FREQUENCY_WINDOW_DAYS:
                frequency[FREQUENCY_WINDOW_DAYS - 1 - age] += 1

        return {
            "total_queries": total,
            "success_rate": round(successes / total * 100, 2) if total else 0.0,
            "avg_response_time_ms": round(sum(e.response_time_ms for e in entries) / total, 2) if total else 0.0,
            "last_queried": max(e.timestamp for e in entries) if entries else None,
            "query_frequency": frequency,
            "frequency_start": (today - timedelta(days=FREQUENCY_WINDOW_DAYS - 1)).isoformat(),
        }
