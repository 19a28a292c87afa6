"""
Schema tools.

Contains schema introspection and relationship inference.
"""

from .schema_introspector import SchemaIntrospector, SchemaSnapshot
from .schema_graph import Relationship, RelationshipMap, infer_relationships, singular

__all__ = [
    # Introspection
    "SchemaIntrospector",
    "SchemaSnapshot",
    # Relationships
    "Relationship",
    "RelationshipMap",
    "infer_relationships",
    "singular",
]
