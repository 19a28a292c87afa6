from .cache import SchemaCache
from .query_log import QueryLog, QueryLogEntry

__all__ = ["SchemaCache", "QueryLog", "QueryLogEntry"]
