"""
Cypher Parser using Lark
Transforms Cypher queries into AST
"""

import logging
from pathlib import Path
from typing import Optional

from lark import Lark, Transformer
from lark.exceptions import LarkError

from ..exceptions import CypherSyntaxError
from .ast_nodes import *

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"


class CypherTransformer(Transformer):
    """Transforms Lark parse tree into AST nodes"""

    # Query structure
    def start(self, items):
        return items[0]

    def query(self, items):
        return Query(clauses=list(items))

    # Clauses
    def match(self, items):
        patterns = []
        where = None

        for item in items:
            if isinstance(item, Pattern):
                patterns.append(item)
            elif isinstance(item, Expression):
                where = item

        return MatchClause(patterns=patterns, where=where)

    def where(self, items):
        return items[0]

    def return_clause(self, items):
        body = self._projection_body(items)
        body.pop('where')
        return ReturnClause(**body)

    def with_clause(self, items):
        return WithClause(**self._projection_body(items))

    def _projection_body(self, items):
        body = {
            'items': [],
            'distinct': False,
            'where': None,
            'order_by': None,
            'skip': None,
            'limit': None,
        }

        for item in items:
            if item is True:  # distinct_marker returns True
                body['distinct'] = True
            elif isinstance(item, list) and all(isinstance(x, ProjectionItem) for x in item):
                body['items'] = item
            elif isinstance(item, list) and all(isinstance(x, SortItem) for x in item):
                body['order_by'] = item
            elif isinstance(item, dict):
                # skip and limit come back as single-key dicts
                body.update(item)
            elif isinstance(item, Expression):
                body['where'] = item

        return body

    def distinct_marker(self, items):
        """Handle DISTINCT keyword"""
        return True

    def projection_list(self, items):
        return items

    def projection_item(self, items):
        expression = items[0]
        alias = items[1].name if len(items) > 1 and isinstance(items[1], Variable) else None
        return ProjectionItem(expression=expression, alias=alias)

    def order(self, items):
        return items

    def asc(self, items):
        return SortOrder.ASC

    def desc(self, items):
        return SortOrder.DESC

    def sort_item(self, items):
        expression = items[0]
        order = SortOrder.ASC

        if len(items) > 1:
            order = items[1]

        return SortItem(expression=expression, order=order)

    def skip(self, items):
        return {'skip': items[0]}

    def limit(self, items):
        return {'limit': items[0]}

    def foreach_clause(self, items):
        variable = items[0].name
        source = items[1]
        return ForEachClause(variable=variable, source=source, actions=list(items[2:]))

    def set_clause(self, items):
        return SetClause(items=items)

    def set_item(self, items):
        return SetItem(variable=items[0].name, property_key=items[1], expression=items[2])

    def create(self, items):
        return CreateClause(pattern=items[0])

    # Patterns
    def pattern(self, items):
        nodes = []
        relationships = []

        for item in items:
            if isinstance(item, NodePattern):
                nodes.append(item)
            elif isinstance(item, RelationshipPattern):
                relationships.append(item)

        return Pattern(nodes=nodes, relationships=relationships)

    def node_pattern(self, items):
        variable = None
        labels = []
        properties = None

        for item in items:
            if isinstance(item, Variable):
                variable = item.name
            elif isinstance(item, list):
                labels = item
            elif isinstance(item, MapLiteral):
                properties = item

        return NodePattern(variable=variable, labels=labels, properties=properties)

    def left_arrow_head(self, items):
        return '<'

    def right_arrow_head(self, items):
        return '>'

    def relationship_pattern(self, items):
        detail = {}
        has_left = False
        has_right = False

        for item in items:
            if item == '<':
                has_left = True
            elif item == '>':
                has_right = True
            elif isinstance(item, dict):
                detail = item

        direction = Direction.BOTH
        if has_left and not has_right:
            direction = Direction.INCOMING
        elif has_right and not has_left:
            direction = Direction.OUTGOING

        return RelationshipPattern(
            variable=detail.get('variable'),
            types=detail.get('types', []),
            properties=detail.get('properties'),
            direction=direction,
        )

    def relationship_detail(self, items):
        result = {'variable': None, 'types': [], 'properties': None}

        for item in items:
            if isinstance(item, Variable):
                result['variable'] = item.name
            elif isinstance(item, list):
                result['types'] = item
            elif isinstance(item, MapLiteral):
                result['properties'] = item

        return result

    def relationship_types(self, items):
        return items

    def rel_type(self, items):
        return str(items[0])

    # Labels and properties
    def node_labels(self, items):
        return items

    def label_name(self, items):
        return str(items[0])

    def properties(self, items):
        return items[0]

    def property_key(self, items):
        return str(items[0])

    # Expressions
    def or_expression(self, items):
        result = items[0]
        for item in items[1:]:
            result = BinaryOp(left=result, operator='OR', right=item)
        return result

    def and_expression(self, items):
        result = items[0]
        for item in items[1:]:
            result = BinaryOp(left=result, operator='AND', right=item)
        return result

    def not_expr(self, items):
        return UnaryOp(operator='NOT', operand=items[0])

    def comparison(self, items):
        left = items[0]
        operator = items[1]
        right = items[2] if len(items) > 2 else None
        return ComparisonOp(left=left, operator=operator, right=right)

    def eq_op(self, items):
        return '='

    def ne_op(self, items):
        return '<>'

    def lt_op(self, items):
        return '<'

    def gt_op(self, items):
        return '>'

    def lte_op(self, items):
        return '<='

    def gte_op(self, items):
        return '>='

    def in_op(self, items):
        return 'IN'

    def contains_op(self, items):
        return 'CONTAINS'

    def starts_with_op(self, items):
        return 'STARTS WITH'

    def ends_with_op(self, items):
        return 'ENDS WITH'

    def is_null_op(self, items):
        return 'IS NULL'

    def is_not_null_op(self, items):
        return 'IS NOT NULL'

    def add_expression(self, items):
        return self._fold_binary(items)

    def multiply_expression(self, items):
        return self._fold_binary(items)

    def _fold_binary(self, items):
        result = items[0]
        i = 1
        while i < len(items):
            result = BinaryOp(left=result, operator=items[i], right=items[i + 1])
            i += 2
        return result

    def add_op(self, items):
        return str(items[0])

    def multiply_op(self, items):
        return str(items[0])

    def negation(self, items):
        return UnaryOp(operator='-', operand=items[0])

    def postfix_expression(self, items):
        result = items[0]
        for key in items[1:]:
            result = PropertyAccess(expression=result, property_key=key)
        return result

    # Atoms
    def integer(self, items):
        return IntegerLiteral(value=int(items[0]))

    def float_number(self, items):
        return FloatLiteral(value=float(items[0]))

    def string(self, items):
        # Remove quotes
        s = str(items[0])[1:-1]
        # Handle escape sequences
        s = s.replace('\\n', '\n').replace('\\t', '\t').replace('\\"', '"').replace("\\'", "'")
        return StringLiteral(value=s)

    def true_literal(self, items):
        return BooleanLiteral(value=True)

    def false_literal(self, items):
        return BooleanLiteral(value=False)

    def null_literal(self, items):
        return NullLiteral()

    def variable(self, items):
        return Variable(name=str(items[0]))

    def list_literal(self, items):
        elements = items[0] if items else []
        return ListLiteral(elements=elements)

    def arguments(self, items):
        return list(items)

    def map_literal(self, items):
        return MapLiteral(items=dict(items))

    def map_item(self, items):
        return (items[0], items[1])

    # Function calls
    def function_invocation(self, items):
        name = items[0]
        distinct = False
        args = []

        for item in items[1:]:
            if item is True:
                distinct = True
            elif isinstance(item, list):
                args = item

        return FunctionCall(name=name, arguments=args, distinct=distinct)

    def star_invocation(self, items):
        return FunctionCall(name=items[0], arguments=[Variable('*')])

    def function_name(self, items):
        return str(items[0])


class CypherParser:
    """Main Cypher parser class"""

    def __init__(self):
        with open(GRAMMAR_PATH, 'r') as f:
            grammar = f.read()

        self.parser = Lark(
            grammar,
            parser='lalr',
            transformer=CypherTransformer(),
            start='start'
        )

    def parse(self, cypher_query: str) -> Query:
        """
        Parse a Cypher query into an AST

        Args:
            cypher_query: Cypher query string

        Returns:
            Query AST node

        Raises:
            CypherSyntaxError: If the text is not in the supported Cypher subset
        """
        try:
            return self.parser.parse(cypher_query)
        except LarkError as e:
            raise CypherSyntaxError(
                f"Failed to parse Cypher query: {e}\nQuery: {cypher_query}", cypher_query
            ) from e

    def try_parse(self, cypher_query: str) -> Optional[Query]:
        """Parse a query, returning None instead of raising on syntax errors"""
        try:
            return self.parse(cypher_query)
        except CypherSyntaxError as e:
            logger.warning(str(e))
            return None
