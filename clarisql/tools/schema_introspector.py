"""
Schema Introspection with a Shared Snapshot Cache

PURPOSE:
========
Reads table and column metadata for a registered database and hands out
immutable SchemaSnapshot objects. Every stage of the pipeline (ambiguity
rules, relationship inference, prompt building) works from a snapshot, so the
catalog is queried once per database per process.

CACHING:
========
Snapshots live in an injected SchemaCache. Concurrent first requests for the
same database share one introspection; failures are never cached.

USAGE:
======
    introspector = SchemaIntrospector(registry, SchemaCache())
    snapshot = introspector.get_schema("default")

    snapshot.table_names        # ("customers", "orders")
    snapshot.to_json()          # {"customers": [{"name": "id", "type": "integer"}, ...]}
"""

import json
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Tuple, Optional

from clarisql.adapters import (
    DatabaseAdapter,
    ConnectionError,
    ExecutionError,
    IntrospectionError,
    create_adapter,
)
from clarisql.db_connection import DatabaseRegistry
from clarisql.models import ColumnInfo
from clarisql.utils import SchemaCache
from configs import INTROSPECTION_TIMEOUT_SECONDS

logger = logging.getLogger("clarisql.schema")


@dataclass(frozen=True)
class SchemaSnapshot:
    """Table -> columns metadata for one database, fixed at introspection time."""
    database_id: str
    tables: Mapping[str, Tuple[ColumnInfo, ...]]

    @classmethod
    def build(cls, database_id: str, tables: Dict[str, List[ColumnInfo]]) -> "SchemaSnapshot":
        frozen = {name: tuple(columns) for name, columns in tables.items()}
        return cls(database_id=database_id, tables=MappingProxyType(frozen))

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(self.tables.keys())

    def columns(self, table_name: str) -> Tuple[ColumnInfo, ...]:
        return self.tables.get(table_name, ())

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            table: [{"name": c.name, "type": c.data_type} for c in columns]
            for table, columns in self.tables.items()
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __len__(self) -> int:
        return len(self.tables)


AdapterFactory = Callable[..., DatabaseAdapter]


class SchemaIntrospector:
    """Produces cached SchemaSnapshot objects for registered databases."""

    def __init__(
        self,
        registry: DatabaseRegistry,
        cache: SchemaCache,
        adapter_factory: AdapterFactory = create_adapter,
        timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.cache = cache
        self.adapter_factory = adapter_factory
        self.timeout = timeout if timeout is not None else INTROSPECTION_TIMEOUT_SECONDS

    def get_schema(self, database_id: str) -> SchemaSnapshot:
        """
        Return the snapshot for database_id, introspecting on first use.

        Raises:
            ConnectionError: Unknown database, missing descriptor, or connect failure
            IntrospectionError: Catalog queries failed
        """
        return self.cache.get_or_load(database_id, lambda: self._introspect(database_id))

    def evict(self, database_id: str) -> bool:
        """Forget the cached snapshot so the next request re-reads the catalog."""
        return self.cache.evict(database_id)

    def _introspect(self, database_id: str) -> SchemaSnapshot:
        connection = self.registry.require(database_id)
        start = time.time()

        adapter = self.adapter_factory(
            connection.connection_string,
            read_only=True,
            timeout=self.timeout,
        )
        with adapter:
            try:
                tables: Dict[str, List[ColumnInfo]] = {}
                for table_name in adapter.list_tables():
                    tables[table_name] = adapter.list_columns(table_name)
            except ExecutionError as e:
                raise IntrospectionError(f"Failed to read schema of '{database_id}': {e}") from e

        snapshot = SchemaSnapshot.build(database_id, tables)
        logger.info(
            "Introspected '%s': %d tables in %.1fms",
            database_id, len(snapshot), (time.time() - start) * 1000,
        )
        return snapshot
