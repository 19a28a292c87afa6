"""
ClariSQL Package

This package contains the natural-language-to-SQL clarification pipeline:
- orchestrator: ambiguity rules, dialogue state, generation client, executor
- tools: schema introspection and relationship inference
- adapters: database drivers behind one interface
- utils: schema cache and query log
- models: data models and schemas
- api: FastAPI application
"""

__version__ = "1.0.0"
