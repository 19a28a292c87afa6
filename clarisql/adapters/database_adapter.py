"""
Database Adapter Layer for ClariSQL.

This module provides a unified interface for database operations,
allowing the pipeline to work with different database backends
(SQLite for local development and tests, Postgres for production).

Design Principles:
- The pipeline NEVER touches a driver directly
- All database operations go through adapters
- Adapters translate driver errors into the exceptions below
"""

from abc import ABC, abstractmethod
from typing import List, Any, Optional, Dict
from dataclasses import dataclass, field
from enum import Enum

from clarisql.models import ColumnInfo


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


@dataclass
class ConnectionConfig:
    """Database connection configuration."""
    db_type: DatabaseType
    # SQLite
    file_path: Optional[str] = None
    # Postgres
    connection_string: Optional[str] = None
    # Open the session read-only at the driver level
    read_only: bool = False
    # Upper bound in seconds for connecting and for each statement
    timeout: Optional[float] = None


@dataclass
class ResultSet:
    """Rows returned by a statement, in the order the database produced them."""
    columns: List[str] = field(default_factory=list)
    rows: List[tuple] = field(default_factory=list)
    truncated: bool = False

    def records(self) -> List[Dict[str, Any]]:
        """Rows as dicts keyed by column name."""
        return [dict(zip(self.columns, row)) for row in self.rows]


# ============================================================
# ERRORS
# ============================================================

class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database, or no usable connection descriptor."""
    pass


class IntrospectionError(DatabaseError):
    """Catalog queries failed while reading the schema."""
    pass


class ExecutionError(DatabaseError):
    """Query execution failed."""
    pass


class EmptyQueryError(ExecutionError):
    """The SQL handed to the executor was empty."""
    pass


# ============================================================
# ADAPTER INTERFACE
# ============================================================

class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    All database operations in the system MUST go through this interface.
    Use as a context manager so the connection is always released:

        with create_adapter(uri, read_only=True) as adapter:
            tables = adapter.list_tables()
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish database connection. Raises ConnectionError."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def execute(self, sql: str, params: Optional[tuple] = None, max_rows: Optional[int] = None) -> ResultSet:
        """
        Execute a SQL statement and return its rows.

        Args:
            sql: SQL query string
            params: Optional query parameters (for parameterized queries)
            max_rows: Fetch at most this many rows; ResultSet.truncated is set when more exist

        Raises:
            ExecutionError: If the database rejects or aborts the statement
        """
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of the tables in the default schema, ordered by name."""
        pass

    @abstractmethod
    def list_columns(self, table_name: str) -> List[ColumnInfo]:
        """Columns of a table with their declared types, in ordinal order."""
        pass

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
