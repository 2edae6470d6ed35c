"""
SQL Generator for Cypher AST
Resolves a MATCH ... WHERE ... RETURN ... ORDER BY query against the schema
mapping and renders it as a single PostgreSQL SELECT statement
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Tuple, Union

from ..exceptions import MissingSchemaError, TranslationError
from ..schema import (
    EDGE_SOURCE,
    EDGE_TARGET,
    EDGE_TYPE,
    EDGES_TABLE,
    NODE_ID,
    NODES_TABLE,
    STRUCTURAL_EDGE_COLUMNS,
    ColumnType,
    SchemaMapping,
    find_column,
    merge_columns,
)
from .ast_nodes import *
from .ir import DecodedQuery, DerivedRelation, EdgeBinding, NodeBinding, OrderSpec, OutputColumn
from .parser import CypherParser
from .rendering import format_literal, format_value, qualified, quote_text, unique_name

logger = logging.getLogger(__name__)

AGGREGATE_FUNCTIONS = {
    'count': 'COUNT',
    'sum': 'SUM',
    'avg': 'AVG',
    'min': 'MIN',
    'max': 'MAX',
    'collect': 'array_agg',
}

SCALAR_FUNCTIONS = {
    'tolower': 'LOWER',
    'toupper': 'UPPER',
    'size': 'cardinality',
    'length': 'length',
    'abs': 'ABS',
    'coalesce': 'COALESCE',
    'trim': 'TRIM',
}

COMPARISON_OPERATORS = {
    '=': '=',
    '<>': '<>',
    '<': '<',
    '>': '>',
    '<=': '<=',
    '>=': '>=',
}


@dataclass(frozen=True)
class ResolvedColumn:
    """An expression operand resolved to SQL, with what is known about its origin"""
    sql: str
    column_type: Optional[ColumnType] = None
    is_list: bool = False
    origin_table: Optional[str] = None
    origin_column: Optional[str] = None


class SQLContext:
    """Per-call state for SQL generation"""

    def __init__(self, relations: Optional[Mapping[str, DerivedRelation]] = None):
        self.relations: Dict[str, DerivedRelation] = dict(relations or {})
        self.nodes: Dict[str, NodeBinding] = {}
        self.edges: Dict[str, EdgeBinding] = {}
        self.from_parts: List[str] = []
        self.where_parts: List[str] = []
        self.alias_counter = 0

    def fresh_alias(self, kind: str) -> str:
        """Alias for an anonymous node (``n``) or edge (``e``) pattern"""
        alias = f"_{kind}{self.alias_counter}"
        self.alias_counter += 1
        return alias

    def binding(self, name: str) -> Union[NodeBinding, EdgeBinding, None]:
        return self.nodes.get(name) or self.edges.get(name)

    def bound_relations(self) -> List[Tuple[str, DerivedRelation]]:
        return [(b.alias, b.relation) for b in self.nodes.values() if b.relation is not None]


class SQLGenerator:
    """
    Generates PostgreSQL SQL from Cypher AST

    Args:
        schema: Table mapping for labels and relationship types
        parser: Parser used by ``convert``; a new one is created when omitted
    """

    def __init__(self, schema: SchemaMapping, parser: Optional[CypherParser] = None):
        self.schema = schema
        self.parser = parser or CypherParser()

    def convert(self, statement: str) -> Optional[DecodedQuery]:
        """
        Parse and translate a plain MATCH ... RETURN statement

        Returns:
            The decoded query, or None when the statement does not parse or
            is not a plain MATCH/RETURN query
        """
        query = self.parser.try_parse(statement)
        if query is None:
            return None
        if query.shape is not QueryShape.BASE:
            logger.warning(f"Not a plain MATCH/RETURN statement: {statement}")
            return None
        return self.generate(query)

    def generate(self, query: Query,
                 relations: Optional[Mapping[str, DerivedRelation]] = None) -> Optional[DecodedQuery]:
        """
        Generate SQL from AST

        Args:
            query: Query made of MATCH clauses followed by one RETURN
            relations: Variables bound to tables materialized by an earlier
                stage; a node pattern using such a variable reads that table

        Returns:
            DecodedQuery with the rendered SELECT in ``sql_equivalent``, or
            None when the query has no MATCH/RETURN shape
        """
        matches = query.clauses_of(MatchClause)
        returns = query.clauses_of(ReturnClause)
        if (not matches or len(returns) != 1 or query.clauses[-1] is not returns[0]
                or len(matches) + 1 != len(query.clauses)):
            logger.warning("Query is not made of MATCH clauses followed by a single RETURN")
            return None

        context = SQLContext(relations)
        predicates = []
        for match in matches:
            self._generate_match(match, context)
            if match.where is not None:
                predicates.append(match.where)

        if not context.nodes:
            return None

        ret = returns[0]
        projection, group_by = self._generate_projection(ret.items, context)
        where_parts = context.where_parts + [self._generate_expression(p, context) for p in predicates]
        order_by = self._generate_order(ret.order_by or [], projection, context)

        distinct = "DISTINCT " if ret.distinct else ""
        sql_parts = [f"SELECT {distinct}{', '.join(c.select_item for c in projection)}"]
        sql_parts.extend(context.from_parts)
        if where_parts:
            sql_parts.append(f"WHERE {' AND '.join(where_parts)}")
        has_aggregation = any(self._contains_aggregation(item.expression) for item in ret.items)
        if has_aggregation and group_by:
            sql_parts.append(f"GROUP BY {', '.join(group_by)}")
        if order_by:
            sql_parts.append(f"ORDER BY {', '.join(o.render() for o in order_by)}")
        if ret.skip is not None:
            sql_parts.append(f"OFFSET {self._generate_expression(ret.skip, context)}")
        if ret.limit is not None:
            sql_parts.append(f"LIMIT {self._generate_expression(ret.limit, context)}")
        sql = ' '.join(sql_parts) + ';'

        predicate = None
        for expr in predicates:
            predicate = expr if predicate is None else BinaryOp(left=predicate, operator='AND', right=expr)

        logger.debug(f"Generated SQL: {sql}")
        return DecodedQuery(
            nodes=tuple(context.nodes.values()),
            edges=tuple(context.edges.values()),
            predicate=predicate,
            projection=projection,
            order_by=order_by,
            sql_equivalent=sql,
        )

    # Patterns

    def _generate_match(self, match: MatchClause, context: SQLContext):
        """Add FROM/JOIN entries and pattern filters for a MATCH clause"""
        for pattern in match.patterns:
            self._generate_pattern(pattern, context)

    def _generate_pattern(self, pattern: Pattern, context: SQLContext):
        first, is_new = self._bind_node(pattern.nodes[0], context)
        if is_new:
            keyword = "CROSS JOIN" if context.from_parts else "FROM"
            context.from_parts.append(f"{keyword} {first.table} {first.alias}")

        source = first
        for rel, target_pattern in zip(pattern.relationships, pattern.nodes[1:]):
            source = self._generate_relationship_join(source, rel, target_pattern, context)

    def _bind_node(self, node: NodePattern, context: SQLContext) -> Tuple[NodeBinding, bool]:
        """Resolve a node pattern to its table, reusing an earlier binding of the same alias"""
        alias = node.variable or context.fresh_alias('n')
        existing = context.nodes.get(alias)
        if existing is not None:
            if node.labels and self._label_key(node.labels) != self._label_key(existing.labels):
                raise TranslationError(
                    f"Node {alias} is bound with labels {list(existing.labels)} and {node.labels}"
                )
            filters = self._property_filters(existing, node.properties, context)
            context.nodes[alias] = replace(existing, filters=existing.filters + filters)
            return context.nodes[alias], False
        if alias in context.edges:
            raise TranslationError(f"Variable {alias} is already bound to a relationship")

        if alias in context.relations:
            if node.labels:
                raise TranslationError(f"Variable {alias} reads a derived table and cannot carry labels")
            relation = context.relations[alias]
            binding = NodeBinding(alias=alias, table=relation.name, relation=relation)
        elif node.labels:
            binding = NodeBinding(
                alias=alias,
                table=self.schema.label_table(node.labels),
                columns=self.schema.columns_for_label(node.labels),
                labels=tuple(node.labels),
            )
        else:
            binding = NodeBinding(alias=alias, table=NODES_TABLE, columns=self.schema.global_node_columns())

        context.nodes[alias] = binding
        filters = self._property_filters(binding, node.properties, context)
        context.nodes[alias] = replace(binding, filters=filters)
        return context.nodes[alias], True

    @staticmethod
    def _label_key(labels) -> frozenset:
        return frozenset(label.lower() for label in labels)

    def _generate_relationship_join(self, source: NodeBinding, rel: RelationshipPattern,
                                    target_pattern: NodePattern, context: SQLContext) -> NodeBinding:
        """Join the edge store and the target node; returns the target binding"""
        edge_alias = rel.variable or context.fresh_alias('e')
        if context.binding(edge_alias) is not None:
            raise TranslationError(f"Variable {edge_alias} is already bound")

        if rel.types:
            columns = merge_columns(
                STRUCTURAL_EDGE_COLUMNS,
                *(self.schema.columns_for_relationship_type(t) for t in rel.types),
            )
            type_names = tuple(self.schema.relationship_type_name(t) for t in rel.types)
        else:
            columns = self.schema.global_edge_columns()
            type_names = ()

        # Register the edge first so filters of the target pattern can refer to it
        edge = EdgeBinding(
            alias=edge_alias, table=EDGES_TABLE, source=source.alias, target='',
            direction=rel.direction, types=type_names, columns=columns,
        )
        context.edges[edge_alias] = edge
        target, target_is_new = self._bind_node(target_pattern, context)

        source_key = self._node_key(source, context)
        target_key = self._node_key(target, context)
        edge_source = qualified(edge_alias, EDGE_SOURCE)
        edge_target = qualified(edge_alias, EDGE_TARGET)

        if rel.direction == Direction.OUTGOING:
            edge_condition = f"{edge_source} = {source_key}"
            target_condition = f"{target_key} = {edge_target}"
        elif rel.direction == Direction.INCOMING:
            edge_condition = f"{edge_target} = {source_key}"
            target_condition = f"{target_key} = {edge_source}"
        else:
            edge_condition = f"{source_key} IN ({edge_source}, {edge_target})"
            target_condition = (
                f"{target_key} = CASE WHEN {edge_source} = {source_key} "
                f"THEN {edge_target} ELSE {edge_source} END"
            )

        if target_is_new:
            context.from_parts.append(f"JOIN {EDGES_TABLE} {edge_alias} ON {edge_condition}")
            context.from_parts.append(f"JOIN {target.table} {target.alias} ON {target_condition}")
        else:
            context.from_parts.append(
                f"JOIN {EDGES_TABLE} {edge_alias} ON {edge_condition} AND {target_condition}"
            )

        filters = []
        if len(type_names) == 1:
            filters.append(f"{qualified(edge_alias, EDGE_TYPE)} = {quote_text(type_names[0])}")
        elif type_names:
            quoted = ', '.join(quote_text(t) for t in type_names)
            filters.append(f"{qualified(edge_alias, EDGE_TYPE)} IN ({quoted})")
        context.where_parts.extend(filters)

        edge = replace(edge, target=target.alias)
        context.edges[edge_alias] = edge
        filters.extend(self._property_filters(edge, rel.properties, context))
        context.edges[edge_alias] = replace(edge, filters=tuple(filters))
        return target

    def _node_key(self, binding: NodeBinding, context: SQLContext) -> str:
        return self._resolve_property(binding.alias, NODE_ID, context).sql

    def _property_filters(self, binding: Union[NodeBinding, EdgeBinding],
                          properties: Optional[MapLiteral], context: SQLContext) -> Tuple[str, ...]:
        """Equality filters for a ``{key: value}`` pattern map"""
        if properties is None:
            return ()
        filters = []
        for key, value_expr in properties.items.items():
            column = self._resolve_property(binding.alias, key, context)
            value = self._generate_typed_operand(value_expr, column.column_type, context)
            filters.append(f"{column.sql} = {value}")
        context.where_parts.extend(filters)
        return tuple(filters)

    # Name resolution

    def _resolve_property(self, variable: str, key: str, context: SQLContext) -> ResolvedColumn:
        """Resolve ``variable.key`` to a column of a bound table"""
        binding = context.binding(variable)
        if binding is not None and not (isinstance(binding, NodeBinding) and binding.relation):
            column = find_column(binding.columns, key)
            if column is None:
                raise MissingSchemaError(f"No column {key} for {variable} in table {binding.table}")
            return ResolvedColumn(
                sql=qualified(binding.alias, column.name),
                column_type=column.type,
                origin_table=binding.table,
                origin_column=column.name,
            )

        for alias, relation in context.bound_relations():
            output = relation.lookup_property(variable, key)
            if output is not None:
                return self._from_relation(alias, output)
        raise MissingSchemaError(f"Unknown property {variable}.{key}")

    def _resolve_variable(self, name: str, context: SQLContext) -> ResolvedColumn:
        """Resolve a bare variable to the value identifying it"""
        binding = context.binding(name)
        if isinstance(binding, EdgeBinding):
            row = ', '.join(qualified(name, c) for c in (EDGE_SOURCE, EDGE_TARGET, EDGE_TYPE))
            return ResolvedColumn(sql=f"ROW({row})", origin_table=binding.table)
        if binding is not None and binding.relation is None:
            return ResolvedColumn(
                sql=qualified(name, NODE_ID),
                column_type=ColumnType.LONG,
                origin_table=binding.table,
                origin_column=NODE_ID,
            )

        for alias, relation in context.bound_relations():
            output = relation.key_column(name)
            if output is not None:
                return self._from_relation(alias, output)
        raise MissingSchemaError(f"Unknown variable {name}")

    @staticmethod
    def _from_relation(alias: str, output: OutputColumn) -> ResolvedColumn:
        return ResolvedColumn(
            sql=qualified(alias, output.name),
            column_type=output.column_type,
            is_list=output.is_list,
            origin_table=output.origin_table,
            origin_column=output.origin_column,
        )

    def _resolve_operand(self, expr: Expression, context: SQLContext) -> ResolvedColumn:
        if isinstance(expr, PropertyAccess) and isinstance(expr.expression, Variable):
            return self._resolve_property(expr.expression.name, expr.property_key, context)
        if isinstance(expr, Variable) and expr.name != '*':
            return self._resolve_variable(expr.name, context)
        return ResolvedColumn(sql=self._generate_expression(expr, context))

    # Projection

    def _generate_projection(self, items: List[ProjectionItem],
                             context: SQLContext) -> Tuple[Tuple[OutputColumn, ...], List[str]]:
        """Output columns of a RETURN list, plus the GROUP BY expressions"""
        outputs: List[OutputColumn] = []
        group_by: List[str] = []
        for index, item in enumerate(items):
            taken = [o.name for o in outputs]
            produced = self._generate_projection_item(item, index, context, taken)
            outputs.extend(produced)
            if not self._contains_aggregation(item.expression):
                group_by.extend(o.sql for o in produced)
        return tuple(outputs), group_by

    def _generate_projection_item(self, item: ProjectionItem, index: int,
                                  context: SQLContext, taken: List[str]) -> List[OutputColumn]:
        expr = item.expression

        if isinstance(expr, Variable):
            return self._expand_variable(expr.name, item.alias, context, taken)

        if isinstance(expr, PropertyAccess) and isinstance(expr.expression, Variable):
            resolved = self._resolve_property(expr.expression.name, expr.property_key, context)
            return [OutputColumn(
                name=unique_name(item.alias or expr.property_key, taken),
                sql=resolved.sql,
                scope_name=item.alias or expr.expression.name,
                property_key=None if item.alias else expr.property_key,
                column_type=resolved.column_type,
                is_list=resolved.is_list,
                origin_table=resolved.origin_table,
                origin_column=resolved.origin_column,
            )]

        if isinstance(expr, FunctionCall) and expr.name.lower() in AGGREGATE_FUNCTIONS:
            return [self._aggregate_output(expr, item.alias, context, taken)]

        if isinstance(expr, FunctionCall):
            default_name = expr.name.lower()
        else:
            default_name = f"expr{index}"
        return [OutputColumn(
            name=unique_name(item.alias or default_name, taken),
            sql=self._generate_expression(expr, context),
            scope_name=item.alias,
        )]

    def _expand_variable(self, name: str, alias: Optional[str],
                         context: SQLContext, taken: List[str]) -> List[OutputColumn]:
        """Columns for a bare variable in a RETURN list"""
        scope = alias or name
        binding = context.binding(name)
        if binding is not None and not (isinstance(binding, NodeBinding) and binding.relation):
            outputs = []
            for column in binding.columns:
                outputs.append(OutputColumn(
                    name=unique_name(f"{scope}_{column.name}", taken + [o.name for o in outputs]),
                    sql=qualified(binding.alias, column.name),
                    scope_name=scope,
                    property_key=column.name,
                    column_type=column.type,
                    origin_table=binding.table,
                    origin_column=column.name,
                ))
            return outputs

        for relation_alias, relation in context.bound_relations():
            output = relation.lookup_name(name)
            if output is not None:
                return [OutputColumn(
                    name=unique_name(scope, taken),
                    sql=qualified(relation_alias, output.name),
                    scope_name=scope,
                    column_type=output.column_type,
                    is_list=output.is_list,
                    origin_table=output.origin_table,
                    origin_column=output.origin_column,
                )]
            expanded = relation.expand(name)
            if expanded:
                outputs = []
                for column in expanded:
                    outputs.append(OutputColumn(
                        name=unique_name(f"{scope}_{column.property_key}", taken + [o.name for o in outputs]),
                        sql=qualified(relation_alias, column.name),
                        scope_name=scope,
                        property_key=column.property_key,
                        column_type=column.column_type,
                        is_list=column.is_list,
                        origin_table=column.origin_table,
                        origin_column=column.origin_column,
                    ))
                return outputs
        raise MissingSchemaError(f"Unknown variable {name}")

    def _aggregate_output(self, expr: FunctionCall, alias: Optional[str],
                          context: SQLContext, taken: List[str]) -> OutputColumn:
        name = expr.name.lower()
        argument = None
        if expr.arguments and not (isinstance(expr.arguments[0], Variable) and expr.arguments[0].name == '*'):
            argument = self._resolve_operand(expr.arguments[0], context)

        column_type = None
        origin_table = origin_column = None
        if name == 'count':
            column_type = ColumnType.LONG
        elif argument is not None and name in ('collect', 'min', 'max'):
            column_type = argument.column_type
            origin_table, origin_column = argument.origin_table, argument.origin_column
        elif argument is not None and name == 'sum' and argument.column_type and argument.column_type.is_numeric:
            column_type = ColumnType.LONG

        return OutputColumn(
            name=unique_name(alias or name, taken),
            sql=self._generate_function(expr, context),
            scope_name=alias,
            column_type=column_type,
            aggregate=name,
            is_list=name == 'collect',
            origin_table=origin_table,
            origin_column=origin_column,
        )

    def _contains_aggregation(self, expr) -> bool:
        """Check if an expression contains an aggregation function"""
        if isinstance(expr, FunctionCall):
            if expr.name.lower() in AGGREGATE_FUNCTIONS:
                return True
            return any(self._contains_aggregation(arg) for arg in expr.arguments)
        if isinstance(expr, PropertyAccess):
            return self._contains_aggregation(expr.expression)
        if isinstance(expr, (BinaryOp, ComparisonOp)):
            return self._contains_aggregation(expr.left) or self._contains_aggregation(expr.right)
        if isinstance(expr, UnaryOp):
            return self._contains_aggregation(expr.operand)
        return False

    def _generate_order(self, sort_items: List[SortItem], projection: Tuple[OutputColumn, ...],
                        context: SQLContext) -> Tuple[OrderSpec, ...]:
        specs = []
        for item in sort_items:
            expr = item.expression
            output = None
            if isinstance(expr, Variable):
                output = next(
                    (o for o in projection if o.scope_name == expr.name and o.property_key is None), None
                )
            if output is not None:
                sql = output.name
            else:
                sql = self._generate_expression(expr, context)
            specs.append(OrderSpec(sql=sql, order=item.order))
        return tuple(specs)

    # Expressions

    def _generate_expression(self, expr: Expression, context: SQLContext) -> str:
        """Generate SQL for expression"""
        if isinstance(expr, Variable):
            if expr.name == '*':
                return '*'
            return self._resolve_variable(expr.name, context).sql

        elif isinstance(expr, PropertyAccess):
            if not isinstance(expr.expression, Variable):
                raise TranslationError("Property access is only supported on variables")
            return self._resolve_property(expr.expression.name, expr.property_key, context).sql

        elif isinstance(expr, Literal):
            return format_literal(expr.value)

        elif isinstance(expr, ListLiteral):
            elements = [self._generate_expression(e, context) for e in expr.elements]
            return f"ARRAY[{', '.join(elements)}]"

        elif isinstance(expr, MapLiteral):
            raise TranslationError("Map values are only supported in patterns")

        elif isinstance(expr, BinaryOp):
            left = self._generate_expression(expr.left, context)
            right = self._generate_expression(expr.right, context)
            return f"({left} {expr.operator.upper()} {right})"

        elif isinstance(expr, UnaryOp):
            operand = self._generate_expression(expr.operand, context)
            if expr.operator.upper() == 'NOT':
                return f"NOT ({operand})"
            return f"-{operand}"

        elif isinstance(expr, ComparisonOp):
            return self._generate_comparison(expr, context)

        elif isinstance(expr, FunctionCall):
            return self._generate_function(expr, context)

        raise TranslationError(f"Unsupported expression: {expr!r}")

    def _generate_comparison(self, expr: ComparisonOp, context: SQLContext) -> str:
        left = self._resolve_operand(expr.left, context)
        op = expr.operator

        # For unary operators like IS NULL, there's no right operand
        if expr.right is None:
            return f"{left.sql} {op}"

        if op == 'IN':
            if isinstance(expr.right, ListLiteral):
                values = [
                    self._generate_typed_operand(e, left.column_type, context)
                    for e in expr.right.elements
                ]
                return f"{left.sql} IN ({', '.join(values)})"
            right = self._resolve_operand(expr.right, context)
            return f"{left.sql} = ANY({right.sql})"

        right = self._resolve_operand(expr.right, context)
        # A literal takes the type of the column it is compared with
        left_sql = self._generate_typed_operand(expr.left, right.column_type, context, left.sql)
        right_sql = self._generate_typed_operand(expr.right, left.column_type, context, right.sql)

        if op == 'CONTAINS':
            return f"{left_sql} LIKE '%' || {right_sql} || '%'"
        elif op == 'STARTS WITH':
            return f"{left_sql} LIKE {right_sql} || '%'"
        elif op == 'ENDS WITH':
            return f"{left_sql} LIKE '%' || {right_sql}"
        return f"{left_sql} {COMPARISON_OPERATORS[op]} {right_sql}"

    def _generate_typed_operand(self, expr: Expression, column_type: Optional[ColumnType],
                                context: SQLContext, fallback: Optional[str] = None) -> str:
        """Render a literal for a column of ``column_type``; other expressions render as-is"""
        try:
            value = literal_value(expr)
        except TypeError:
            return fallback if fallback is not None else self._generate_expression(expr, context)
        if column_type is None:
            return format_literal(value)
        return format_value(value, column_type)

    def _generate_function(self, expr: FunctionCall, context: SQLContext) -> str:
        name = expr.name.lower()
        func_name = AGGREGATE_FUNCTIONS.get(name) or SCALAR_FUNCTIONS.get(name, expr.name.upper())
        args = [self._generate_expression(arg, context) for arg in expr.arguments]
        distinct = "DISTINCT " if expr.distinct else ""
        return f"{func_name}({distinct}{', '.join(args)})"
