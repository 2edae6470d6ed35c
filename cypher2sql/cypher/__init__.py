"""
Cypher Parser and SQL converters
Parses Cypher into an AST and renders it as PostgreSQL statements
"""

from .parser import CypherParser
from .sql_generator import SQLGenerator
from .with_converter import WithConverter
from .foreach_converter import ForEachConverter
from .ir import DecodedQuery, StagedQuery
from .rendering import UNSUPPORTED
from .ast_nodes import *

__all__ = [
    'CypherParser',
    'SQLGenerator',
    'WithConverter',
    'ForEachConverter',
    'DecodedQuery',
    'StagedQuery',
    'UNSUPPORTED',
]
