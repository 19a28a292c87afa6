"""
Conftest for ClariSQL tests.

Ensures the project root is on sys.path so that 'clarisql' and 'configs'
resolve without installation, sets safe environment defaults before any
module reads them, and provides:

- a small SQLite shop database (customers, orders, products)
- a registry with an owner and a read-only entry for it
- a generation client whose LLM answers are scripted per kind
"""

import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Set environment BEFORE any configs import
os.environ.setdefault("GEMINI_API_KEY", "test-key-for-ci")
os.environ.setdefault("LLM_MODEL", "gemini/gemini-2.0-flash")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from clarisql.db_connection import DatabaseRegistry
from clarisql.models import AccessRole, DatabaseConnection
from clarisql.orchestrator import (
    ClarificationPipeline,
    GenerationClient,
    GenerationError,
    GenerationKind,
    LLMResponse,
    QueryExecutor,
)
from clarisql.tools import SchemaIntrospector
from clarisql.utils import SchemaCache


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

SHOP_SCHEMA = """
CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT, segment TEXT);
CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER, amount REAL, status TEXT);
CREATE TABLE products (id INTEGER PRIMARY KEY, name TEXT, price REAL);

INSERT INTO customers VALUES (1, 'Ada', 'enterprise'), (2, 'Grace', 'retail'), (3, 'Linus', 'retail');
INSERT INTO orders VALUES
    (1, 1, 120.0, 'shipped'),
    (2, 1, 80.0, 'shipped'),
    (3, 2, 50.0, 'pending'),
    (4, 3, 75.5, 'shipped');
INSERT INTO products VALUES (1, 'Widget', 9.99), (2, 'Gadget', 24.5);
"""


@pytest.fixture
def shop_db(tmp_path) -> str:
    """Path of a freshly created SQLite shop database."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(SHOP_SCHEMA)
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def registry(shop_db) -> DatabaseRegistry:
    registry = DatabaseRegistry()
    registry.register(DatabaseConnection(
        database_id="shop", connection_string=f"sqlite:///{shop_db}", role=AccessRole.OWNER,
    ))
    registry.register(DatabaseConnection(
        database_id="shop_ro", connection_string=f"sqlite:///{shop_db}", role=AccessRole.READ_ONLY,
    ))
    return registry


# =============================================================================
# GENERATION FIXTURES
# =============================================================================

class ScriptedGenerationClient(GenerationClient):
    """
    GenerationClient whose completion call is replaced by scripted answers.

    responses maps GenerationKind -> str | Exception | list of those (consumed
    one per call). Unscripted kinds raise GenerationError, except the general
    check which answers "no clarification needed".
    """

    DEFAULTS = {
        GenerationKind.GENERAL_CLARIFICATION_CHECK: '{"needs_clarification": false, "question": null}',
    }

    def __init__(self, responses=None):
        super().__init__(model="test/model", timeout=1)
        self.responses = dict(responses or {})
        self.calls = []

    def _call(self, kind, prompt):
        self.calls.append((kind, prompt))
        self.call_count += 1
        value = self.responses.get(kind, self.DEFAULTS.get(kind))
        if isinstance(value, list):
            value = value.pop(0) if value else None
        if value is None:
            raise GenerationError(f"no scripted response for {kind.value}")
        if isinstance(value, Exception):
            raise value
        return LLMResponse(content=value, kind=kind, model=self.model)

    @property
    def kinds(self):
        return [kind for kind, _ in self.calls]

    def prompts_for(self, kind):
        return [prompt for k, prompt in self.calls if k == kind]


@pytest.fixture
def scripted_generator():
    """Factory: scripted_generator({GenerationKind.SQL_FROM_QUERY: "SELECT 1"})."""
    return ScriptedGenerationClient


@pytest.fixture
def make_pipeline(registry):
    """Factory building a pipeline on the shop registry around a generator."""
    def _make(generator):
        return ClarificationPipeline(
            introspector=SchemaIntrospector(registry, SchemaCache()),
            generator=generator,
            executor=QueryExecutor(registry),
        )
    return _make
