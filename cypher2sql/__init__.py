"""
Cypher to SQL translation for graphs stored as relational tables

Translates a subset of Cypher (MATCH, WHERE, WITH, RETURN, ORDER BY,
FOREACH) into PostgreSQL statements against the tables described by a
SchemaMapping.
"""

from .exceptions import (
    CypherSyntaxError,
    MissingSchemaError,
    TranslationError,
    UnsupportedQueryError,
)
from .schema import Column, ColumnType, SchemaMapping
from .translator import CypherToSQLTranslator
from .driver import PostgresDriver, PostgresDriverSession

__version__ = "0.1.0"

__all__ = [
    "CypherToSQLTranslator",
    "PostgresDriver",
    "PostgresDriverSession",
    "SchemaMapping",
    "Column",
    "ColumnType",
    "TranslationError",
    "CypherSyntaxError",
    "MissingSchemaError",
    "UnsupportedQueryError",
]
