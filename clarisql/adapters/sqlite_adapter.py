"""
SQLite Database Adapter.

Implements DatabaseAdapter interface for SQLite databases.
Used for local development, offline demos and the test suite.
"""

import sqlite3
import time
from typing import List, Optional
from pathlib import Path

from clarisql.models import ColumnInfo

from .database_adapter import (
    DatabaseAdapter,
    ConnectionConfig,
    DatabaseType,
    ResultSet,
    ConnectionError,
    ExecutionError,
)

# SQLite VM instructions between deadline checks
_PROGRESS_INTERVAL = 1000


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite implementation of DatabaseAdapter.

    Features:
    - File-based database (no server required)
    - Read-only sessions via URI mode=ro
    - Per-statement deadline enforced through a progress handler
    """

    def __init__(self, file_path: str, read_only: bool = False, timeout: Optional[float] = None):
        """
        Initialize SQLite adapter.

        Args:
            file_path: Path to SQLite database file
            read_only: Open the file in read-only mode
            timeout: Seconds a single statement may run before it is interrupted
        """
        config = ConnectionConfig(
            db_type=DatabaseType.SQLITE,
            file_path=file_path,
            read_only=read_only,
            timeout=timeout,
        )
        super().__init__(config)
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Establish connection to SQLite database."""
        file_path = self.config.file_path

        if not file_path:
            raise ConnectionError("No file path specified for SQLite database")

        if not Path(file_path).exists():
            raise ConnectionError(f"Database file not found: {file_path}")

        try:
            if self.config.read_only:
                uri = Path(file_path).resolve().as_uri() + "?mode=ro"
                self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
            else:
                self._connection = sqlite3.connect(file_path, check_same_thread=False)
            self._connected = True
        except sqlite3.Error as e:
            raise ConnectionError(f"Failed to connect to SQLite: {e}")

    def disconnect(self) -> None:
        """Close SQLite connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False

    def _arm_deadline(self) -> None:
        if not self.config.timeout:
            return
        deadline = time.monotonic() + self.config.timeout
        self._connection.set_progress_handler(
            lambda: 1 if time.monotonic() > deadline else 0,
            _PROGRESS_INTERVAL,
        )

    def execute(self, sql: str, params: Optional[tuple] = None, max_rows: Optional[int] = None) -> ResultSet:
        """Execute SQL query and return its rows."""
        if not self._connection:
            self.connect()

        self._arm_deadline()
        try:
            cursor = self._connection.cursor()
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)

            if not cursor.description:
                self._connection.commit()
                return ResultSet()

            columns = [col[0] for col in cursor.description]
            if max_rows is None:
                return ResultSet(columns=columns, rows=[tuple(row) for row in cursor.fetchall()])

            rows = [tuple(row) for row in cursor.fetchmany(max_rows + 1)]
            return ResultSet(columns=columns, rows=rows[:max_rows], truncated=len(rows) > max_rows)

        except sqlite3.Error as e:
            if "interrupted" in str(e):
                raise ExecutionError(f"SQLite query exceeded {self.config.timeout}s timeout")
            raise ExecutionError(f"SQLite query failed: {e}")
        finally:
            if self._connection:
                self._connection.set_progress_handler(None, 0)

    def list_tables(self) -> List[str]:
        """List user tables from sqlite_master."""
        result = self.execute("""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        return [row[0] for row in result.rows]

    def list_columns(self, table_name: str) -> List[ColumnInfo]:
        """Read column names and declared types via PRAGMA table_info."""
        quoted = table_name.replace('"', '""')
        result = self.execute(f'PRAGMA table_info("{quoted}")')
        # PRAGMA table_info rows: (cid, name, type, notnull, dflt_value, pk)
        return [ColumnInfo(name=row[1], data_type=row[2] or "") for row in result.rows]
