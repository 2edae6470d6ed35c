"""
Entry point for Cypher to SQL translation

Parses the query once and hands it to the converter for its clause shape:
FOREACH queries, WITH queries or plain MATCH ... RETURN queries.
"""

import logging
from typing import List, Optional, Union

from .cypher.ast_nodes import Query, QueryShape
from .cypher.foreach_converter import ForEachConverter
from .cypher.ir import StagedQuery
from .cypher.parser import CypherParser
from .cypher.rendering import UNSUPPORTED, join_statements
from .cypher.sql_generator import SQLGenerator
from .cypher.with_converter import DEFAULT_TEMP_TABLE_PREFIX, WithConverter
from .schema import SchemaMapping

logger = logging.getLogger(__name__)


class CypherToSQLTranslator:
    """
    Translates Cypher queries into PostgreSQL statements for a schema mapping

    The translator keeps no per-query state, so one instance can serve
    concurrent callers.

    Args:
        schema: Table mapping for labels and relationship types
        temp_table_prefix: Prefix of temporary tables created for WITH and FOREACH
    """

    def __init__(self, schema: SchemaMapping, temp_table_prefix: str = DEFAULT_TEMP_TABLE_PREFIX):
        self.schema = schema
        self.temp_table_prefix = temp_table_prefix
        self.parser = CypherParser()
        self.generator = SQLGenerator(schema, parser=self.parser)
        self.with_converter = WithConverter(self.generator, temp_table_prefix=temp_table_prefix)
        self.foreach_converter = ForEachConverter(
            schema, self.stage, parser=self.parser, temp_table_prefix=temp_table_prefix
        )

    def translate(self, cypher_query: str) -> Optional[str]:
        """
        Translate a Cypher query to SQL

        Args:
            cypher_query: Cypher query string

        Returns:
            The SQL statements joined by a space (a no-op SELECT when there is
            nothing to run), ``""`` when the clause combination is not
            supported, or None when the query cannot be parsed or decoded

        Raises:
            MissingSchemaError: If the query refers to a label, relationship
                type or property the schema mapping does not know
        """
        statements = self.translate_statements(cypher_query)
        if isinstance(statements, list):
            return join_statements(statements)
        return statements

    def translate_statements(self, cypher_query: str) -> Union[List[str], str, None]:
        """Same as ``translate`` but keeps the statements apart"""
        query = self.parser.try_parse(cypher_query)
        if query is None:
            return None

        shape = query.shape
        if shape is QueryShape.FOREACH:
            result = self.foreach_converter.build(query)
        elif shape is QueryShape.WITH:
            result = self.with_converter.build(query)
        else:
            result = self.stage(query)

        if isinstance(result, StagedQuery):
            result = result.statements
        if result == UNSUPPORTED:
            logger.warning(f"Unsupported query: {cypher_query}")
        elif result is None:
            logger.warning(f"Query could not be decoded: {cypher_query}")
        else:
            logger.debug(f"Translated {cypher_query!r} to {result}")
        return result

    def stage(self, query: Query) -> Union[StagedQuery, str, None]:
        """
        Compile a query that ends in RETURN

        Returns:
            The decoded final query and its setup statements, UNSUPPORTED, or
            None when the query does not decode
        """
        if query.shape is QueryShape.WITH:
            return self.with_converter.build(query)
        if query.shape is QueryShape.FOREACH:
            return UNSUPPORTED
        decoded = self.generator.generate(query)
        if decoded is None:
            return None
        return StagedQuery(final=decoded)
