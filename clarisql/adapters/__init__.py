"""
Database adapters: the only code that talks to database drivers.

    from clarisql.adapters import create_adapter

    with create_adapter("sqlite:///./data/shop.db", read_only=True) as adapter:
        result = adapter.execute("SELECT * FROM orders", max_rows=100)
"""
from .database_adapter import (
    DatabaseAdapter,
    DatabaseType,
    ConnectionConfig,
    ResultSet,
    DatabaseError,
    ConnectionError,
    IntrospectionError,
    ExecutionError,
    EmptyQueryError,
)
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter
from .factory import create_adapter, detect_database_type, MISSING_DESCRIPTOR_MESSAGE

__all__ = [
    "DatabaseAdapter",
    "DatabaseType",
    "ConnectionConfig",
    "ResultSet",
    "DatabaseError",
    "ConnectionError",
    "IntrospectionError",
    "ExecutionError",
    "EmptyQueryError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "create_adapter",
    "detect_database_type",
    "MISSING_DESCRIPTOR_MESSAGE",
]
