"""
Relational schema mapping for graph labels and relationship types

Describes the tables a graph was converted into: the global ``nodes`` and
``edges`` stores, one table per label (or label combination) and one
``e$<type>`` table per relationship type. The mapping is built once and is
read-only afterwards, so a single instance can be shared by concurrent
translations.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .exceptions import MissingSchemaError

logger = logging.getLogger(__name__)

NODES_TABLE = 'nodes'
EDGES_TABLE = 'edges'
RELATIONSHIP_TABLE_PREFIX = 'e$'

# Structural columns shared by every node and edge table
NODE_ID = 'id'
NODE_LABEL = 'label'
EDGE_SOURCE = 'idl'
EDGE_TARGET = 'idr'
EDGE_TYPE = 'type'


class ColumnType(Enum):
    """Semantic column type and its SQL spelling"""
    INTEGER = "INT"
    LONG = "BIGINT"
    TEXT = "TEXT"
    TEXT_ARRAY = "TEXT[]"

    @classmethod
    def from_sql(cls, sql_type: str) -> 'ColumnType':
        normalized = ' '.join(sql_type.upper().split())
        aliases = {
            'INTEGER': cls.INTEGER,
            'INT4': cls.INTEGER,
            'INT8': cls.LONG,
            'VARCHAR': cls.TEXT,
            'VARCHAR[]': cls.TEXT_ARRAY,
        }
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown column type: {sql_type}")

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.LONG)


@dataclass(frozen=True)
class Column:
    """A typed column of a relational table"""
    name: str
    type: ColumnType

    def definition(self) -> str:
        return f"{self.name} {self.type.value}"


LabelSpec = Union[str, Sequence[str]]
ColumnSpec = Union[str, Iterable[Column]]

STRUCTURAL_NODE_COLUMNS = (
    Column(NODE_ID, ColumnType.LONG),
    Column(NODE_LABEL, ColumnType.TEXT),
)
STRUCTURAL_EDGE_COLUMNS = (
    Column(EDGE_SOURCE, ColumnType.LONG),
    Column(EDGE_TARGET, ColumnType.LONG),
    Column(EDGE_TYPE, ColumnType.TEXT),
)


def parse_column_definitions(definitions: str) -> Tuple[Column, ...]:
    """
    Parse a column definition list such as ``"node_id INT, tags TEXT[]"``

    Args:
        definitions: Comma separated ``name TYPE`` pairs

    Returns:
        Columns in declaration order
    """
    columns = []
    for part in definitions.split(','):
        part = part.strip()
        if not part:
            continue
        pieces = part.split(None, 1)
        if len(pieces) != 2:
            raise ValueError(f"Invalid column definition: {part!r}")
        columns.append(Column(pieces[0], ColumnType.from_sql(pieces[1])))
    return tuple(columns)


def find_column(columns: Iterable[Column], name: str) -> Optional[Column]:
    """Look up a column by name, ignoring case as PostgreSQL does"""
    lowered = name.lower()
    for column in columns:
        if column.name.lower() == lowered:
            return column
    return None


def _label_key(label: LabelSpec) -> frozenset:
    if isinstance(label, str):
        parts = label.split(',')
    else:
        parts = list(label)
    return frozenset(part.strip().lower() for part in parts if part.strip())


def _to_columns(definition: ColumnSpec) -> Tuple[Column, ...]:
    if isinstance(definition, str):
        return parse_column_definitions(definition)
    return tuple(definition)


def merge_columns(*groups: Iterable[Column]) -> Tuple[Column, ...]:
    merged: Dict[str, Column] = {}
    for group in groups:
        for column in group:
            key = column.name.lower()
            existing = merged.get(key)
            if existing is None:
                merged[key] = column
            elif existing.type is not column.type:
                logger.debug(
                    f"Column {column.name} declared as both {existing.type.value} "
                    f"and {column.type.value}; keeping {existing.type.value}"
                )
    return tuple(merged.values())


class SchemaMapping:
    """
    Immutable lookup from labels and relationship types to typed columns

    Args:
        labels: Label text (``"Global"`` or a compound ``"Global, Local"``) to columns
        relationship_types: Relationship type to columns
        node_columns: Columns of the global ``nodes`` store (derived when omitted)
        edge_columns: Columns of the global ``edges`` store (derived when omitted)
    """

    def __init__(
        self,
        labels: Optional[Mapping[str, ColumnSpec]] = None,
        relationship_types: Optional[Mapping[str, ColumnSpec]] = None,
        node_columns: Optional[ColumnSpec] = None,
        edge_columns: Optional[ColumnSpec] = None,
    ):
        label_entries = {}
        for label, definition in (labels or {}).items():
            columns = merge_columns((STRUCTURAL_NODE_COLUMNS[0],), _to_columns(definition))
            label_entries[_label_key(label)] = (label, columns)

        type_entries = {}
        for rel_type, definition in (relationship_types or {}).items():
            type_entries[rel_type.lower()] = (rel_type, _to_columns(definition))

        if node_columns is None:
            nodes = merge_columns(
                STRUCTURAL_NODE_COLUMNS, *(cols for _, cols in label_entries.values())
            )
        else:
            nodes = merge_columns(STRUCTURAL_NODE_COLUMNS, _to_columns(node_columns))

        if edge_columns is None:
            edges = merge_columns(
                STRUCTURAL_EDGE_COLUMNS, *(cols for _, cols in type_entries.values())
            )
        else:
            edges = merge_columns(STRUCTURAL_EDGE_COLUMNS, _to_columns(edge_columns))

        self._labels = MappingProxyType(label_entries)
        self._relationship_types = MappingProxyType(type_entries)
        self._node_columns = nodes
        self._edge_columns = edges

    @classmethod
    def from_definitions(
        cls,
        labels: Optional[Mapping[str, str]] = None,
        relationship_types: Optional[Mapping[str, str]] = None,
        node_columns: Optional[str] = None,
        edge_columns: Optional[str] = None,
    ) -> 'SchemaMapping':
        """Build a mapping from ``"name TYPE, ..."`` definition strings"""
        return cls(
            labels={label: parse_column_definitions(text) for label, text in (labels or {}).items()},
            relationship_types={
                rel_type: parse_column_definitions(text)
                for rel_type, text in (relationship_types or {}).items()
            },
            node_columns=node_columns,
            edge_columns=edge_columns,
        )

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self._labels.values()]

    @property
    def relationship_types(self) -> List[str]:
        return [rel_type for rel_type, _ in self._relationship_types.values()]

    def _label_entry(self, label: LabelSpec) -> Tuple[str, Tuple[Column, ...]]:
        entry = self._labels.get(_label_key(label))
        if entry is None:
            name = label if isinstance(label, str) else ', '.join(label)
            raise MissingSchemaError(f"No table mapping for label: {name}")
        return entry

    def _type_entry(self, rel_type: str) -> Tuple[str, Tuple[Column, ...]]:
        entry = self._relationship_types.get(rel_type.lower())
        if entry is None:
            raise MissingSchemaError(f"No table mapping for relationship type: {rel_type}")
        return entry

    def has_label(self, label: LabelSpec) -> bool:
        return _label_key(label) in self._labels

    def has_relationship_type(self, rel_type: str) -> bool:
        return rel_type.lower() in self._relationship_types

    def columns_for_label(self, label: LabelSpec) -> Tuple[Column, ...]:
        return self._label_entry(label)[1]

    def columns_for_relationship_type(self, rel_type: str) -> Tuple[Column, ...]:
        return self._type_entry(rel_type)[1]

    def relationship_type_name(self, rel_type: str) -> str:
        """Spelling of a relationship type as stored in the edge type column"""
        return self._type_entry(rel_type)[0]

    def global_node_columns(self) -> Tuple[Column, ...]:
        return self._node_columns

    def global_edge_columns(self) -> Tuple[Column, ...]:
        return self._edge_columns

    def columns_for_table(self, table: str) -> Tuple[Column, ...]:
        """Columns of a node table (``nodes`` or a label table) or of ``edges``"""
        if table == NODES_TABLE:
            return self._node_columns
        if table == EDGES_TABLE:
            return self._edge_columns
        for label, columns in self._labels.values():
            if self.label_table(label) == table:
                return columns
        raise MissingSchemaError(f"No table named {table} in the mapping")

    def label_table(self, label: LabelSpec) -> str:
        """Table name for a label; compound labels are joined with ``_``"""
        text = self._label_entry(label)[0]
        return text.replace(', ', '_').lower()

    def relationship_table(self, rel_type: str) -> str:
        return f"{RELATIONSHIP_TABLE_PREFIX}{self._type_entry(rel_type)[0].lower()}"

    def create_table_statements(self) -> List[str]:
        """
        DDL for every table of the mapping

        Returns:
            ``CREATE TABLE`` statements for ``nodes``, ``edges``, each label
            table and each relationship-type table
        """
        statements = [
            self._create_table(NODES_TABLE, self._node_columns),
            self._create_table(EDGES_TABLE, self._edge_columns),
        ]
        for label, columns in self._labels.values():
            statements.append(self._create_table(self.label_table(label), columns))
        for rel_type, columns in self._relationship_types.values():
            statements.append(self._create_table(
                self.relationship_table(rel_type),
                merge_columns(STRUCTURAL_EDGE_COLUMNS, columns),
            ))
        return statements

    def drop_table_statements(self) -> List[str]:
        tables = [NODES_TABLE, EDGES_TABLE]
        tables.extend(self.label_table(label) for label, _ in self._labels.values())
        tables.extend(self.relationship_table(t) for t, _ in self._relationship_types.values())
        return [f"DROP TABLE IF EXISTS {table};" for table in tables]

    @staticmethod
    def _create_table(name: str, columns: Sequence[Column]) -> str:
        return f"CREATE TABLE {name}({', '.join(c.definition() for c in columns)});"
