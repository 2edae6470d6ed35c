"""
AST Node Classes for Cypher Query Representation
Each node represents a component of a Cypher query
"""

from dataclasses import dataclass, field
from typing import List, Optional, Any
from enum import Enum


class Direction(Enum):
    """Relationship direction"""
    OUTGOING = ">"
    INCOMING = "<"
    BOTH = "-"


class SortOrder(Enum):
    """Sort order for ORDER BY"""
    ASC = "ASC"
    DESC = "DESC"


class QueryShape(Enum):
    """Which converter a parsed query belongs to"""
    BASE = "base"
    WITH = "with"
    FOREACH = "foreach"


# Base AST Node
@dataclass
class ASTNode:
    """Base class for all AST nodes"""
    pass


# Query Structure
@dataclass
class Query(ASTNode):
    """Top-level query node"""
    clauses: List[ASTNode]

    def clauses_of(self, kind: type) -> List[ASTNode]:
        return [clause for clause in self.clauses if isinstance(clause, kind)]

    @property
    def shape(self) -> QueryShape:
        if self.clauses_of(ForEachClause):
            return QueryShape.FOREACH
        if self.clauses_of(WithClause):
            return QueryShape.WITH
        return QueryShape.BASE


# Clauses
@dataclass
class MatchClause(ASTNode):
    """MATCH clause"""
    patterns: List['Pattern']
    where: Optional['Expression'] = None


@dataclass
class ReturnClause(ASTNode):
    """RETURN clause"""
    items: List['ProjectionItem']
    distinct: bool = False
    order_by: Optional[List['SortItem']] = None
    skip: Optional['Expression'] = None
    limit: Optional['Expression'] = None


@dataclass
class WithClause(ASTNode):
    """WITH clause for query chaining"""
    items: List['ProjectionItem']
    distinct: bool = False
    where: Optional['Expression'] = None
    order_by: Optional[List['SortItem']] = None
    skip: Optional['Expression'] = None
    limit: Optional['Expression'] = None

    def as_return(self) -> ReturnClause:
        """The same projection read as a RETURN (WHERE is dropped)"""
        return ReturnClause(
            items=self.items,
            distinct=self.distinct,
            order_by=self.order_by,
            skip=self.skip,
            limit=self.limit,
        )


@dataclass
class ForEachClause(ASTNode):
    """FOREACH (variable IN list | actions)"""
    variable: str
    source: 'Expression'
    actions: List[ASTNode]


@dataclass
class CreateClause(ASTNode):
    """CREATE clause"""
    pattern: 'Pattern'


@dataclass
class SetClause(ASTNode):
    """SET clause"""
    items: List['SetItem']


# Pattern Elements
@dataclass
class Pattern(ASTNode):
    """A node-relationship-node chain; relationships[i] joins nodes[i] and nodes[i + 1]"""
    nodes: List['NodePattern']
    relationships: List['RelationshipPattern'] = field(default_factory=list)


@dataclass
class NodePattern(ASTNode):
    """Node pattern (n:Label {prop: value})"""
    variable: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    properties: Optional['MapLiteral'] = None


@dataclass
class RelationshipPattern(ASTNode):
    """Relationship pattern -[r:TYPE]->"""
    variable: Optional[str] = None
    types: List[str] = field(default_factory=list)
    properties: Optional['MapLiteral'] = None
    direction: Direction = Direction.BOTH


# Projections and Sorting
@dataclass
class ProjectionItem(ASTNode):
    """Item in RETURN or WITH clause"""
    expression: 'Expression'
    alias: Optional[str] = None


@dataclass
class SortItem(ASTNode):
    """Item in ORDER BY clause"""
    expression: 'Expression'
    order: SortOrder = SortOrder.ASC


@dataclass
class SetItem(ASTNode):
    """Item in SET clause"""
    variable: str
    property_key: str
    expression: 'Expression'


# Expressions
@dataclass
class Expression(ASTNode):
    """Base expression node"""
    pass


@dataclass
class BinaryOp(Expression):
    """Binary operation (a + b, a AND b, etc.)"""
    left: Expression
    operator: str
    right: Expression


@dataclass
class UnaryOp(Expression):
    """Unary operation (NOT a, -a, etc.)"""
    operator: str
    operand: Expression


@dataclass
class ComparisonOp(Expression):
    """Comparison operation (a = b, a < b, etc.)"""
    left: Expression
    operator: str
    right: Optional[Expression] = None


@dataclass
class PropertyAccess(Expression):
    """Property access (n.name)"""
    expression: Expression
    property_key: str


@dataclass
class FunctionCall(Expression):
    """Function invocation"""
    name: str
    arguments: List[Expression]
    distinct: bool = False


# Literals
@dataclass
class Variable(Expression):
    """Variable reference"""
    name: str


@dataclass
class Literal(Expression):
    """Base literal value"""
    value: Any


@dataclass
class IntegerLiteral(Literal):
    """Integer literal"""
    value: int


@dataclass
class FloatLiteral(Literal):
    """Float literal"""
    value: float


@dataclass
class StringLiteral(Literal):
    """String literal"""
    value: str


@dataclass
class BooleanLiteral(Literal):
    """Boolean literal"""
    value: bool


@dataclass
class NullLiteral(Literal):
    """NULL literal"""
    value: None = None


@dataclass
class ListLiteral(Expression):
    """List literal [1, 2, 3]"""
    elements: List[Expression]


@dataclass
class MapLiteral(Expression):
    """Map literal {key: value, ...}"""
    items: dict[str, Expression]


def literal_value(expr: Expression) -> Any:
    """Python value of a literal expression; raises TypeError for anything else"""
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, ListLiteral):
        return [literal_value(e) for e in expr.elements]
    if isinstance(expr, UnaryOp) and expr.operator == '-':
        value = literal_value(expr.operand)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return -value
    raise TypeError(f"Not a literal expression: {expr!r}")


# Helper functions for AST construction
def create_node_pattern(variable: Optional[str] = None,
                        labels: Optional[List[str]] = None,
                        properties: Optional[MapLiteral] = None) -> NodePattern:
    """Helper to create node pattern"""
    return NodePattern(
        variable=variable,
        labels=labels or [],
        properties=properties
    )
