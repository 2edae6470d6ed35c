"""
Intermediate representation of a translated query

A DecodedQuery records what the SQL generator resolved from a parsed
MATCH ... RETURN statement: which tables the node and edge patterns were
bound to, the WHERE predicate, the projected output columns and the final
SQL text. Converters for WITH and FOREACH build on top of it.
"""

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from ..schema import Column, ColumnType, NODE_ID
from .ast_nodes import Direction, Expression, ForEachClause, SortOrder

_COLUMN_REFERENCE = re.compile(r'^[A-Za-z_][A-Za-z0-9_$]*\.([A-Za-z_][A-Za-z0-9_]*)$')


@dataclass(frozen=True)
class OutputColumn:
    """
    One column of a SELECT list

    Attributes:
        name: Unique output column name
        sql: SQL expression producing the value
        scope_name: Name a later query stage can refer to the value by
            (the projection alias, or the variable for ``n.prop`` items)
        property_key: Property key when the value is ``scope_name.property_key``
        column_type: Semantic type, when known
        aggregate: Aggregate function name for aggregate items
        is_list: Whether the value is an array (``collect``)
        origin_table: Table the value was read from
        origin_column: Column of ``origin_table`` the value was read from
    """
    name: str
    sql: str
    scope_name: Optional[str] = None
    property_key: Optional[str] = None
    column_type: Optional[ColumnType] = None
    aggregate: Optional[str] = None
    is_list: bool = False
    origin_table: Optional[str] = None
    origin_column: Optional[str] = None

    @property
    def select_item(self) -> str:
        """The column as written in a SELECT list"""
        match = _COLUMN_REFERENCE.match(self.sql)
        if match and match.group(1).lower() == self.name.lower():
            return self.sql
        return f"{self.sql} AS {self.name}"


@dataclass(frozen=True)
class OrderSpec:
    """One ORDER BY entry"""
    sql: str
    order: SortOrder = SortOrder.ASC

    def render(self) -> str:
        return f"{self.sql} {self.order.value}"


@dataclass(frozen=True)
class DerivedRelation:
    """A temporary table materialized from an earlier query stage"""
    name: str
    columns: Tuple[OutputColumn, ...]

    def lookup_name(self, name: str) -> Optional[OutputColumn]:
        """Column holding the whole value bound to ``name`` (an alias or aggregate)"""
        for column in self.columns:
            if column.scope_name == name and column.property_key is None:
                return column
        return None

    def lookup_property(self, name: str, property_key: str) -> Optional[OutputColumn]:
        """Column holding ``name.property_key``"""
        lowered = property_key.lower()
        for column in self.columns:
            if column.scope_name == name and column.property_key and column.property_key.lower() == lowered:
                return column
        return None

    def expand(self, name: str) -> Tuple[OutputColumn, ...]:
        """All property columns that were projected for ``name``"""
        return tuple(
            column for column in self.columns
            if column.scope_name == name and column.property_key is not None
        )

    def key_column(self, name: str) -> Optional[OutputColumn]:
        """Column identifying the node bound to ``name``"""
        return self.lookup_property(name, NODE_ID) or self.lookup_name(name)


@dataclass(frozen=True)
class NodeBinding:
    """A node pattern resolved to a table"""
    alias: str
    table: str
    columns: Tuple[Column, ...] = ()
    labels: Tuple[str, ...] = ()
    filters: Tuple[str, ...] = ()
    relation: Optional[DerivedRelation] = None


@dataclass(frozen=True)
class EdgeBinding:
    """A relationship pattern resolved to the edge store"""
    alias: str
    table: str
    source: str
    target: str
    direction: Direction = Direction.BOTH
    types: Tuple[str, ...] = ()
    columns: Tuple[Column, ...] = ()
    filters: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DecodedQuery:
    """
    Resolved form of a MATCH ... RETURN statement

    Instances are never modified; ``with_foreach`` returns a copy carrying
    the FOREACH clause that consumes this query's result.
    """
    nodes: Tuple[NodeBinding, ...]
    edges: Tuple[EdgeBinding, ...]
    predicate: Optional[Expression]
    projection: Tuple[OutputColumn, ...]
    order_by: Tuple[OrderSpec, ...]
    sql_equivalent: str
    foreach: Optional[ForEachClause] = None

    @property
    def first_alias(self) -> str:
        return self.nodes[0].alias

    def with_foreach(self, clause: ForEachClause) -> 'DecodedQuery':
        return replace(self, foreach=clause)

    def output(self, scope_name: str) -> Optional[OutputColumn]:
        """Output column identifying the value a later stage reaches by ``scope_name``"""
        return self.as_relation('').key_column(scope_name)

    def as_relation(self, name: str) -> DerivedRelation:
        """Describe the result set of this query as a table called ``name``"""
        return DerivedRelation(name=name, columns=self.projection)


@dataclass(frozen=True)
class StagedQuery:
    """A decoded query together with the statements that must run before it"""
    final: DecodedQuery
    setup: Tuple[str, ...] = ()

    @property
    def statements(self) -> List[str]:
        return [*self.setup, self.final.sql_equivalent]
