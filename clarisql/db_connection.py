"""
Registered Database Lookup.

The pipeline never manages database registrations itself: records are
created elsewhere (an admin UI, a migration, the environment) and handed to
the DatabaseRegistry, which the introspector and executor only read.

Usage:
    from clarisql.db_connection import DatabaseRegistry

    registry = DatabaseRegistry.from_config(load_registered_databases())
    connection = registry.require("default")
"""

import logging
import threading
from typing import Dict, Any, List, Optional

from clarisql.adapters import ConnectionError, MISSING_DESCRIPTOR_MESSAGE
from clarisql.models import DatabaseConnection, AccessRole

logger = logging.getLogger("clarisql.registry")


class DatabaseRegistry:
    """Thread-safe, in-memory map of database id -> DatabaseConnection."""

    def __init__(self):
        self._connections: Dict[str, DatabaseConnection] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, records: Dict[str, Dict[str, Any]]) -> "DatabaseRegistry":
        """Build a registry from the records produced by configs.load_registered_databases()."""
        registry = cls()
        for database_id, record in records.items():
            registry.register(DatabaseConnection(
                database_id=database_id,
                connection_string=record.get("connection_string") or "",
                role=AccessRole(record.get("role") or AccessRole.OWNER.value),
                name=record.get("name"),
            ))
        return registry

    def register(self, connection: DatabaseConnection) -> None:
        """Add or replace a record."""
        with self._lock:
            self._connections[connection.database_id] = connection
        logger.info("Registered database '%s' (%s)", connection.database_id, connection.role.value)

    def unregister(self, database_id: str) -> None:
        with self._lock:
            self._connections.pop(database_id, None)

    def get(self, database_id: str) -> Optional[DatabaseConnection]:
        return self._connections.get(database_id)

    def require(self, database_id: str) -> DatabaseConnection:
        """
        Return the record for database_id.

        Raises:
            ConnectionError: Unknown id, or a record without a connection descriptor
        """
        connection = self._connections.get(database_id)
        if connection is None or not connection.connection_string.strip():
            raise ConnectionError(MISSING_DESCRIPTOR_MESSAGE)
        return connection

    def list(self) -> List[DatabaseConnection]:
        with self._lock:
            return list(self._connections.values())

    def __contains__(self, database_id: str) -> bool:
        return database_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
