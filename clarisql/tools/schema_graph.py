"""
Relationship Inference from Column Naming

PURPOSE:
========
Derives foreign-key style relationships between tables when the schema does
not declare them, using the `<table>_id` naming convention:

    orders.customer_id  ->  customers.id

The resulting map is serialized into every generation prompt so the LLM
joins tables on the right columns.

RULES:
======
- Only columns ending in the literal suffix `_id` are candidates.
- The prefix must equal another table's name, or that name with one
  trailing "s" removed (customers -> customer).
- A table never relates to itself.
- At most one relationship per unordered pair of tables; the first match in
  table-then-column order wins and later matches are ignored.

USAGE:
======
    relationships = infer_relationships(snapshot)
    relationships.to_json()
    # [{"target": "customers.id", "source": "orders.customer_id"}]
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional

logger = logging.getLogger("clarisql.schema")

FK_SUFFIX = "_id"


@dataclass(frozen=True)
class Relationship:
    """source_table.source_column references target_table.id."""
    target_table: str
    source_table: str
    source_column: str

    @property
    def target(self) -> str:
        return f"{self.target_table}.id"

    @property
    def source(self) -> str:
        return f"{self.source_table}.{self.source_column}"

    @property
    def pair(self) -> FrozenSet[str]:
        return frozenset((self.target_table, self.source_table))

    def join_condition(self) -> str:
        return f"{self.target} = {self.source}"

    def __str__(self) -> str:
        return f"{self.target} -> {self.source}"


class RelationshipMap:
    """Ordered, read-only collection of inferred relationships."""

    def __init__(self, relationships: Optional[List[Relationship]] = None):
        self._by_pair: Dict[FrozenSet[str], Relationship] = {}
        for relationship in relationships or []:
            self._by_pair.setdefault(relationship.pair, relationship)

    def between(self, table_a: str, table_b: str) -> Optional[Relationship]:
        return self._by_pair.get(frozenset((table_a, table_b)))

    def for_table(self, table_name: str) -> List[Relationship]:
        return [r for r in self._by_pair.values() if table_name in (r.target_table, r.source_table)]

    def to_list(self) -> List[Dict[str, str]]:
        return [{"target": r.target, "source": r.source} for r in self._by_pair.values()]

    def to_json(self) -> str:
        return json.dumps(self.to_list())

    def __iter__(self) -> Iterator[Relationship]:
        return iter(self._by_pair.values())

    def __len__(self) -> int:
        return len(self._by_pair)

    def __contains__(self, pair) -> bool:
        return frozenset(pair) in self._by_pair


def singular(table_name: str) -> str:
    """Strip one trailing 's' (customers -> customer)."""
    return table_name[:-1] if table_name.endswith("s") else table_name


def infer_relationships(snapshot) -> RelationshipMap:
    """
    Infer relationships for every `_id` column of a SchemaSnapshot.

    Args:
        snapshot: SchemaSnapshot (anything with a `tables` mapping of name -> columns)

    Returns:
        RelationshipMap in discovery order
    """
    table_names = list(snapshot.tables.keys())
    found: Dict[FrozenSet[str], Relationship] = {}

    for source_table in table_names:
        for column in snapshot.tables[source_table]:
            if not column.name.endswith(FK_SUFFIX):
                continue
            candidate = column.name[:-len(FK_SUFFIX)]

            for target_table in table_names:
                if target_table == source_table:
                    continue
                if candidate not in (target_table, singular(target_table)):
                    continue

                pair = frozenset((target_table, source_table))
                if pair in found:
                    continue
                found[pair] = Relationship(
                    target_table=target_table,
                    source_table=source_table,
                    source_column=column.name,
                )
                logger.debug("Inferred relationship %s", found[pair])

    return RelationshipMap(list(found.values()))
