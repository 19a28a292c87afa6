"""Tests for SchemaIntrospector against the SQLite shop database."""
import threading
from unittest.mock import MagicMock

import pytest

from clarisql.adapters import ConnectionError, ExecutionError, IntrospectionError, create_adapter
from clarisql.db_connection import DatabaseRegistry
from clarisql.models import DatabaseConnection
from clarisql.tools import SchemaIntrospector
from clarisql.utils import SchemaCache


class TestSchemaIntrospector:

    def test_reads_tables_and_columns(self, registry):
        snapshot = SchemaIntrospector(registry, SchemaCache()).get_schema("shop")

        assert snapshot.database_id == "shop"
        assert snapshot.table_names == ("customers", "orders", "products")
        assert [c.name for c in snapshot.columns("orders")] == ["id", "customer_id", "amount", "status"]
        assert snapshot.to_dict()["customers"][1] == {"name": "name", "type": "TEXT"}

    def test_snapshot_is_immutable(self, registry):
        snapshot = SchemaIntrospector(registry, SchemaCache()).get_schema("shop")
        with pytest.raises(TypeError):
            snapshot.tables["invoices"] = ()

    def test_second_call_is_served_from_cache(self, registry):
        factory = MagicMock(side_effect=create_adapter)
        introspector = SchemaIntrospector(registry, SchemaCache(), adapter_factory=factory)

        first = introspector.get_schema("shop")
        second = introspector.get_schema("shop")

        assert first is second
        assert factory.call_count == 1

    def test_introspection_uses_read_only_session(self, registry):
        factory = MagicMock(side_effect=create_adapter)
        SchemaIntrospector(registry, SchemaCache(), adapter_factory=factory, timeout=3).get_schema("shop")

        _, kwargs = factory.call_args
        assert kwargs == {"read_only": True, "timeout": 3}

    def test_unknown_database_raises_connection_error(self, registry):
        with pytest.raises(ConnectionError, match="Invalid database ID"):
            SchemaIntrospector(registry, SchemaCache()).get_schema("nope")

    def test_empty_descriptor_raises_connection_error(self):
        registry = DatabaseRegistry()
        registry.register(DatabaseConnection(database_id="broken", connection_string=""))
        with pytest.raises(ConnectionError):
            SchemaIntrospector(registry, SchemaCache()).get_schema("broken")

    def test_unreachable_database_is_not_cached(self, tmp_path):
        registry = DatabaseRegistry()
        registry.register(DatabaseConnection(
            database_id="gone", connection_string=f"sqlite:///{tmp_path / 'gone.db'}",
        ))
        cache = SchemaCache()

        with pytest.raises(ConnectionError):
            SchemaIntrospector(registry, cache).get_schema("gone")
        assert cache.get("gone") is None

    def test_catalog_failure_raises_introspection_error(self, registry):
        adapter = MagicMock()
        adapter.__enter__.return_value = adapter
        adapter.list_tables.side_effect = ExecutionError("permission denied for schema public")
        cache = SchemaCache()
        introspector = SchemaIntrospector(registry, cache, adapter_factory=lambda *a, **kw: adapter)

        with pytest.raises(IntrospectionError, match="permission denied"):
            introspector.get_schema("shop")
        assert cache.get("shop") is None
        adapter.__exit__.assert_called_once()

    def test_concurrent_first_requests_introspect_once(self, registry):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_factory(*args, **kwargs):
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return create_adapter(*args, **kwargs)

        introspector = SchemaIntrospector(registry, SchemaCache(), adapter_factory=slow_factory)
        results = []
        threads = [threading.Thread(target=lambda: results.append(introspector.get_schema("shop")))
                   for _ in range(3)]
        for t in threads:
            t.start()
        started.wait(timeout=5)
        threading.Timer(0.2, release.set).start()
        for t in threads:
            t.join(timeout=5)

        assert len(calls) == 1
        assert len(results) == 3
        assert results[0] is results[1] is results[2]

    def test_evict_rereads_catalog(self, registry, shop_db):
        import sqlite3

        introspector = SchemaIntrospector(registry, SchemaCache())
        introspector.get_schema("shop")

        conn = sqlite3.connect(shop_db)
        conn.execute("CREATE TABLE invoices (id INTEGER, order_id INTEGER)")
        conn.commit()
        conn.close()

        assert "invoices" not in introspector.get_schema("shop").tables
        introspector.evict("shop")
        assert "invoices" in introspector.get_schema("shop").tables
