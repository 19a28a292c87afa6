"""
Shared dependencies for the ClariSQL API.

Provides:
- Structured logging for the whole "clarisql" logger tree
- Database registry seeded from configuration
- Singleton pipeline (created once, reused per request)
- Configuration constants for API behavior
"""

import os
import logging
from typing import Optional

from clarisql.db_connection import DatabaseRegistry
from clarisql.orchestrator import (
    ClarificationPipeline,
    GenerationClient,
    QueryExecutor,
)
from clarisql.tools import SchemaIntrospector
from clarisql.utils import SchemaCache, QueryLog
from configs import QUERY_TIMEOUT_SECONDS, load_registered_databases


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging() -> logging.Logger:
    """Configure structured logging for the API."""
    logger = logging.getLogger("clarisql")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    return logger


logger = setup_logging()


# =============================================================================
# CONFIGURATION
# =============================================================================

# Whole-request guard (QUERY_TIMEOUT_SECONDS, imported above); each external
# call also has its own, shorter timeout
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


# =============================================================================
# SINGLETONS
# =============================================================================

_registry: Optional[DatabaseRegistry] = None
_pipeline: Optional[ClarificationPipeline] = None


def get_registry() -> DatabaseRegistry:
    """Get or create the registry of databases the API may query."""
    global _registry
    if _registry is None:
        _registry = DatabaseRegistry.from_config(load_registered_databases())
        logger.info("Database registry loaded with %d database(s)", len(_registry))
    return _registry


def get_pipeline() -> ClarificationPipeline:
    """
    Get or create the singleton pipeline instance.

    The schema cache, sessions and query log live inside it, so they are
    shared by every request of the process.
    """
    global _pipeline
    if _pipeline is None:
        logger.info("Creating singleton ClarificationPipeline")
        registry = get_registry()
        _pipeline = ClarificationPipeline(
            introspector=SchemaIntrospector(registry, SchemaCache()),
            generator=GenerationClient(),
            executor=QueryExecutor(registry),
            query_log=QueryLog(),
        )
    return _pipeline


def reset_pipeline() -> None:
    """Reset the pipeline and registry (useful for testing)."""
    global _pipeline, _registry
    _pipeline = None
    _registry = None
