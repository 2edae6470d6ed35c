"""
Translation of FOREACH clauses

The clauses before FOREACH are compiled as an ordinary query. The FOREACH
body then runs once per list element: a literal list is unrolled into one
statement per element and action, a list produced by the preceding query is
iterated inside a PL/pgSQL block.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import MissingSchemaError, UnsupportedQueryError
from ..schema import (
    EDGE_SOURCE,
    EDGE_TARGET,
    EDGE_TYPE,
    EDGES_TABLE,
    NODE_ID,
    NODES_TABLE,
    ColumnType,
    SchemaMapping,
    find_column,
)
from .ast_nodes import *
from .ir import DecodedQuery, OutputColumn, StagedQuery
from .parser import CypherParser
from .rendering import (
    UNSUPPORTED,
    as_subquery,
    create_temp_table,
    format_literal,
    format_value,
    join_statements,
    new_temp_table_name,
    plpgsql_loop,
    qualified,
    quote_text,
)
from .with_converter import DEFAULT_TEMP_TABLE_PREFIX

logger = logging.getLogger(__name__)

LOOP_VARIABLE_PREFIX = 'fe_'
SOURCE_ALIAS = 'src'

StageResult = Union[StagedQuery, str, None]


@dataclass(frozen=True)
class NodeKey:
    """How a list element identifies a node: ``table.column = element``"""
    table: str = NODES_TABLE
    column: str = NODE_ID
    column_type: ColumnType = ColumnType.LONG


@dataclass
class ForEachScope:
    """
    Names visible inside a FOREACH body for one rendering

    Exactly one of ``element`` (literal list, one scope per element) or
    ``in_loop`` (PL/pgSQL iteration) applies.
    """
    variable: str
    key: NodeKey
    prefix_keys: Dict[str, OutputColumn] = field(default_factory=dict)
    element: Any = None
    in_loop: bool = False
    prefix_table: Optional[str] = None

    def element_sql(self, column_type: Optional[ColumnType]) -> str:
        if self.in_loop:
            return loop_variable(self.variable)
        if column_type is None:
            return format_literal(self.element)
        return format_value(self.element, column_type)

    def node_ref(self, variable: str) -> str:
        """SQL for the id of the node bound to ``variable``"""
        if variable == self.variable:
            element = self.element_sql(self.key.column_type)
            if self.key.column == NODE_ID:
                return element
            return (f"(SELECT {NODE_ID} FROM {self.key.table} "
                    f"WHERE {self.key.column} = {element} LIMIT 1)")
        if variable not in self.prefix_keys:
            raise UnsupportedQueryError(f"{variable} is not bound by the query before FOREACH")
        if self.in_loop:
            return loop_variable(variable)
        return qualified(SOURCE_ALIAS, self.prefix_keys[variable].name)

    def rows(self, variables: List[str]) -> str:
        """FROM clause over the materialized prefix, when ``variables`` read it"""
        if self.prefix_table and not self.in_loop and any(v in self.prefix_keys for v in variables):
            return f" FROM {self.prefix_table} {SOURCE_ALIAS}"
        return ""


def loop_variable(name: str) -> str:
    return f"{LOOP_VARIABLE_PREFIX}{name}"


class ForEachConverter:
    """
    Translates ``<query> FOREACH (x IN <list> | <actions>)``

    Supported actions are ``SET <var>.<prop> = <value>`` and
    ``CREATE (<u>)-[:TYPE {props}]->(<v>)``, where the variables are the
    loop variable or nodes returned by the preceding query.

    Args:
        schema: Table mapping for labels and relationship types
        stage: Compiles the query before FOREACH (see ``CypherToSQLTranslator.stage``)
        parser: Parser used by ``translate``
        temp_table_prefix: Prefix of generated temporary table names
    """

    def __init__(self, schema: SchemaMapping, stage: Callable[[Query], StageResult],
                 parser: Optional[CypherParser] = None,
                 temp_table_prefix: str = DEFAULT_TEMP_TABLE_PREFIX):
        self.schema = schema
        self.stage = stage
        self.parser = parser or CypherParser()
        self.temp_table_prefix = temp_table_prefix

    def translate(self, cypher: str) -> Optional[str]:
        query = self.parser.try_parse(cypher)
        if query is None:
            return None
        return self.translate_query(query)

    def translate_query(self, query: Query) -> Optional[str]:
        statements = self.build(query)
        if isinstance(statements, list):
            return join_statements(statements)
        return statements

    def build(self, query: Query) -> Union[List[str], str, None]:
        """
        Compile a FOREACH query into statements

        Returns:
            The statements in execution order (none for an empty list),
            UNSUPPORTED, or None when the query before FOREACH does not decode
        """
        clauses = query.clauses
        foreach_clauses = query.clauses_of(ForEachClause)
        if len(foreach_clauses) != 1 or clauses[-1] is not foreach_clauses[0]:
            logger.warning("FOREACH must be the last clause of the query")
            return UNSUPPORTED
        if len(clauses) == 1:
            logger.warning("FOREACH needs a preceding MATCH")
            return None

        prefix = self._prefix_query(clauses[:-1])
        if prefix is None:
            logger.warning("No node variables to return before FOREACH")
            return None

        staged = self.stage(prefix)
        if not isinstance(staged, StagedQuery):
            return staged

        decoded = staged.final.with_foreach(foreach_clauses[0])
        try:
            return self._render(staged, decoded)
        except UnsupportedQueryError as e:
            logger.warning(f"Unsupported FOREACH: {e}")
            return UNSUPPORTED

    def _prefix_query(self, clauses: List[ASTNode]) -> Optional[Query]:
        """Turn the clauses before FOREACH into a query ending in RETURN"""
        clauses = list(clauses)
        last = clauses[-1]
        if isinstance(last, WithClause):
            if last.where is None and not last.order_by:
                clauses[-1] = last.as_return()
            else:
                names = [
                    item.alias or item.expression.name for item in last.items
                    if item.alias or isinstance(item.expression, Variable)
                ]
                clauses.append(ReturnClause(items=[ProjectionItem(Variable(n)) for n in names]))
        elif isinstance(last, MatchClause):
            names = []
            for match in [c for c in clauses if isinstance(c, MatchClause)]:
                for pattern in match.patterns:
                    for node in pattern.nodes:
                        if node.variable and node.variable not in names:
                            names.append(node.variable)
            if not names:
                return None
            clauses.append(ReturnClause(items=[ProjectionItem(Variable(n)) for n in names]))
        return Query(clauses=clauses)

    # Rendering

    def _render(self, staged: StagedQuery, decoded: DecodedQuery) -> List[str]:
        clause = decoded.foreach
        referenced = self._referenced_variables(clause)
        prefix_keys = {}
        for name in referenced:
            key = decoded.output(name)
            if key is None:
                raise UnsupportedQueryError(f"{name} is not returned by the query before FOREACH")
            prefix_keys[name] = key

        if isinstance(clause.source, ListLiteral):
            return self._render_literal_list(staged, decoded, prefix_keys)
        if isinstance(clause.source, Variable):
            return self._render_loop(staged, decoded, prefix_keys)
        raise UnsupportedQueryError("FOREACH source must be a list literal or a returned name")

    def _render_literal_list(self, staged: StagedQuery, decoded: DecodedQuery,
                             prefix_keys: Dict[str, OutputColumn]) -> List[str]:
        """One statement per element and action"""
        clause = decoded.foreach
        try:
            elements = literal_value(clause.source)
        except TypeError:
            raise UnsupportedQueryError("FOREACH list elements must be literals")

        statements = []
        prefix_table = None
        if prefix_keys and elements:
            prefix_table = new_temp_table_name(self.temp_table_prefix)
            statements.extend(staged.setup)
            statements.append(create_temp_table(prefix_table, decoded.sql_equivalent))

        for element in elements:
            scope = ForEachScope(
                variable=clause.variable,
                key=NodeKey(),
                prefix_keys=prefix_keys,
                element=element,
                prefix_table=prefix_table,
            )
            for action in clause.actions:
                statements.extend(self._render_action(action, scope))
        return statements

    def _render_loop(self, staged: StagedQuery, decoded: DecodedQuery,
                     prefix_keys: Dict[str, OutputColumn]) -> List[str]:
        """A PL/pgSQL block iterating over a list returned by the preceding query"""
        clause = decoded.foreach
        source = decoded.output(clause.source.name)
        if source is None:
            raise UnsupportedQueryError(f"{clause.source.name} is not returned by the query before FOREACH")

        if source.origin_table == EDGES_TABLE:
            raise UnsupportedQueryError("FOREACH over relationships is not supported")
        element_type = source.column_type or ColumnType.TEXT
        key = NodeKey(
            table=source.origin_table or NODES_TABLE,
            column=source.origin_column or NODE_ID,
            column_type=element_type,
        )
        scope = ForEachScope(variable=clause.variable, key=key, prefix_keys=prefix_keys, in_loop=True)

        element_sql = qualified(SOURCE_ALIAS, source.name)
        if source.is_list:
            element_sql = f"unnest({element_sql})"
        selected = [element_sql]
        declarations = [(loop_variable(clause.variable), element_type)]
        for name, column in prefix_keys.items():
            selected.append(qualified(SOURCE_ALIAS, column.name))
            declarations.append((loop_variable(name), column.column_type or ColumnType.LONG))

        source_sql = (
            f"SELECT {', '.join(selected)} "
            f"FROM ({as_subquery(decoded.sql_equivalent)}) {SOURCE_ALIAS}"
        )
        body = []
        for action in clause.actions:
            body.extend(self._render_action(action, scope))
        return [*staged.setup, plpgsql_loop(declarations, source_sql, body)]

    def _render_action(self, action: ASTNode, scope: ForEachScope) -> List[str]:
        if isinstance(action, SetClause):
            return self._render_set(action, scope)
        if isinstance(action, CreateClause):
            return [self._render_create(action, scope)]
        raise UnsupportedQueryError(f"Unsupported FOREACH action: {type(action).__name__}")

    def _render_set(self, clause: SetClause, scope: ForEachScope) -> List[str]:
        """``UPDATE`` per SET target, on the table the target node was read from"""
        by_variable: Dict[str, List[SetItem]] = {}
        for item in clause.items:
            by_variable.setdefault(item.variable, []).append(item)

        statements = []
        for variable, items in by_variable.items():
            if variable == scope.variable:
                table = scope.key.table
                condition = f"{scope.key.column} = {scope.element_sql(scope.key.column_type)}"
            elif variable in scope.prefix_keys:
                key = scope.prefix_keys[variable]
                table = key.origin_table or NODES_TABLE
                if scope.in_loop:
                    condition = f"{NODE_ID} = {loop_variable(variable)}"
                else:
                    condition = (f"{NODE_ID} IN (SELECT {qualified(SOURCE_ALIAS, key.name)} "
                                 f"FROM {scope.prefix_table} {SOURCE_ALIAS})")
            else:
                raise UnsupportedQueryError(f"{variable} is not bound by the query before FOREACH")

            columns = self.schema.columns_for_table(table)
            assignments = []
            for item in items:
                column = find_column(columns, item.property_key)
                if column is None:
                    raise MissingSchemaError(f"No column {item.property_key} in table {table}")
                value = self._render_value(item.expression, column.type, scope)
                assignments.append(f"{column.name} = {value}")
            statements.append(f"UPDATE {table} SET {', '.join(assignments)} WHERE {condition};")
        return statements

    def _render_create(self, clause: CreateClause, scope: ForEachScope) -> str:
        """``INSERT`` of one typed relationship into the edge store"""
        pattern = clause.pattern
        if len(pattern.relationships) != 1:
            raise UnsupportedQueryError("CREATE must describe exactly one relationship")
        rel = pattern.relationships[0]
        left, right = pattern.nodes
        if len(rel.types) != 1 or rel.direction == Direction.BOTH:
            raise UnsupportedQueryError("CREATE needs one relationship type and a direction")
        for node in (left, right):
            if node.variable is None or node.labels or node.properties:
                raise UnsupportedQueryError("CREATE endpoints must be bare variables")

        source, target = left.variable, right.variable
        if rel.direction == Direction.INCOMING:
            source, target = target, source

        rel_type = self.schema.relationship_type_name(rel.types[0])
        columns = [EDGE_SOURCE, EDGE_TARGET, EDGE_TYPE]
        values = [scope.node_ref(source), scope.node_ref(target), quote_text(rel_type)]
        if rel.properties is not None:
            type_columns = self.schema.columns_for_relationship_type(rel_type)
            for key, expr in rel.properties.items.items():
                column = find_column(type_columns, key)
                if column is None:
                    raise MissingSchemaError(f"No column {key} for relationship type {rel_type}")
                columns.append(column.name)
                values.append(self._render_value(expr, column.type, scope))

        rows = scope.rows([source, target])
        if rows:
            return f"INSERT INTO {EDGES_TABLE} ({', '.join(columns)}) SELECT {', '.join(values)}{rows};"
        return f"INSERT INTO {EDGES_TABLE} ({', '.join(columns)}) VALUES ({', '.join(values)});"

    def _render_value(self, expr: Expression, column_type: ColumnType, scope: ForEachScope) -> str:
        if isinstance(expr, Variable) and expr.name == scope.variable:
            return scope.element_sql(column_type)
        try:
            return format_value(literal_value(expr), column_type)
        except TypeError:
            raise UnsupportedQueryError("FOREACH values must be literals or the loop variable")

    def _referenced_variables(self, clause: ForEachClause) -> List[str]:
        """Variables other than the loop variable that the body refers to as nodes"""
        names = []

        def add(name: Optional[str]):
            if name and name != clause.variable and name not in names:
                names.append(name)

        for action in clause.actions:
            if isinstance(action, SetClause):
                for item in action.items:
                    add(item.variable)
            elif isinstance(action, CreateClause):
                for node in action.pattern.nodes:
                    add(node.variable)
        return names
