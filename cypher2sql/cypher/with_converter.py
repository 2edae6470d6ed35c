"""
Translation of MATCH ... WITH ... RETURN queries

The WITH projection is materialized into a temporary table and the rest of
the query becomes a second SELECT over that table.
"""

import logging
from dataclasses import replace
from typing import Optional, Union

from .ast_nodes import *
from .ir import StagedQuery
from .rendering import UNSUPPORTED, create_temp_table, join_statements, new_temp_table_name
from .sql_generator import SQLGenerator

logger = logging.getLogger(__name__)

DEFAULT_TEMP_TABLE_PREFIX = 'with_temp'


class WithConverter:
    """
    Translates queries of the form ``MATCH ... WITH ... [WHERE ...] RETURN ... [ORDER BY ...]``

    Args:
        generator: Generator used for both query stages
        temp_table_prefix: Prefix of generated temporary table names
    """

    def __init__(self, generator: SQLGenerator, temp_table_prefix: str = DEFAULT_TEMP_TABLE_PREFIX):
        self.generator = generator
        self.temp_table_prefix = temp_table_prefix

    def translate(self, cypher: str) -> Optional[str]:
        """
        Translate a WITH query into SQL

        Returns:
            ``CREATE TEMP TABLE`` followed by the final SELECT, ``""`` for
            unsupported WITH combinations, or None if the query cannot be
            decoded
        """
        query = self.generator.parser.try_parse(cypher)
        if query is None:
            return None
        return self.translate_query(query)

    def translate_query(self, query: Query) -> Optional[str]:
        staged = self.build(query)
        if isinstance(staged, StagedQuery):
            return join_statements(staged.statements)
        return staged

    def build(self, query: Query) -> Union[StagedQuery, str, None]:
        """
        Compile both stages of a WITH query

        Returns:
            The final stage with the temp table DDL as setup, UNSUPPORTED,
            or None when a stage does not decode
        """
        clauses = query.clauses
        if (len(clauses) < 3 or not isinstance(clauses[-2], WithClause)
                or not isinstance(clauses[-1], ReturnClause)
                or not all(isinstance(c, MatchClause) for c in clauses[:-2])):
            logger.warning("Only MATCH ... WITH ... RETURN queries are supported")
            return UNSUPPORTED

        with_clause = clauses[-2]
        ret = clauses[-1]

        if with_clause.where is not None:
            if with_clause.order_by or ret.order_by:
                logger.warning("WITH followed by both WHERE and ORDER BY is not supported")
                return UNSUPPORTED
            where = with_clause.where
        else:
            # WITH ... ORDER BY orders the final result when RETURN does not
            where = None
            if not ret.order_by and with_clause.order_by:
                ret = replace(ret, order_by=with_clause.order_by)

        first = self.generator.generate(Query(clauses=[*clauses[:-2], with_clause.as_return()]))
        if first is None:
            return None

        table = new_temp_table_name(self.temp_table_prefix)
        alias = first.first_alias
        match = MatchClause(patterns=[Pattern(nodes=[create_node_pattern(alias)])], where=where)
        second = self.generator.generate(
            Query(clauses=[match, ret]),
            relations={alias: first.as_relation(table)},
        )
        if second is None:
            return None

        return StagedQuery(final=second, setup=(create_temp_table(table, first.sql_equivalent),))
