"""Config module initialization."""
from .settings import (
    # Core configuration
    get_database_uri,
    load_registered_databases,
    DATABASE_PATH,
    DATABASE_URL,
    REGISTERED_DATABASES,
    VERBOSE,
    FORBIDDEN_KEYWORDS,
    MAX_RESULT_ROWS,
    RESULT_SAMPLE_ROWS,
    GENERATION_PROMPTS,
    # LLM configuration
    LLM_MODEL,
    MAX_LLM_TOKENS,
    # Timeouts
    GENERATION_TIMEOUT_SECONDS,
    INTROSPECTION_TIMEOUT_SECONDS,
    EXECUTION_TIMEOUT_SECONDS,
    QUERY_TIMEOUT_SECONDS,
    WORST_CASE_REQUEST_SECONDS,
    # Validation
    ConfigurationError,
    validate_configuration,
)

__all__ = [
    # Core configuration
    "get_database_uri",
    "load_registered_databases",
    "DATABASE_PATH",
    "DATABASE_URL",
    "REGISTERED_DATABASES",
    "VERBOSE",
    "FORBIDDEN_KEYWORDS",
    "MAX_RESULT_ROWS",
    "RESULT_SAMPLE_ROWS",
    "GENERATION_PROMPTS",
    # LLM configuration
    "LLM_MODEL",
    "MAX_LLM_TOKENS",
    # Timeouts
    "GENERATION_TIMEOUT_SECONDS",
    "INTROSPECTION_TIMEOUT_SECONDS",
    "EXECUTION_TIMEOUT_SECONDS",
    "QUERY_TIMEOUT_SECONDS",
    "WORST_CASE_REQUEST_SECONDS",
    # Validation
    "ConfigurationError",
    "validate_configuration",
]
