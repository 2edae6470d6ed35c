"""
PostgreSQL driver for translated Cypher queries
Runs the SQL produced by CypherToSQLTranslator using asyncpg
"""

import logging
from typing import Any, List, Optional

try:
    import asyncpg
except ImportError:
    raise ImportError(
        "asyncpg is required for PostgreSQL driver. Install with: pip install asyncpg"
    )

from .cypher.rendering import UNSUPPORTED
from .cypher.with_converter import DEFAULT_TEMP_TABLE_PREFIX
from .exceptions import CypherSyntaxError, UnsupportedQueryError
from .schema import SchemaMapping
from .translator import CypherToSQLTranslator

logger = logging.getLogger(__name__)


class PostgresDriverSession:
    """PostgreSQL session wrapper for executing SQL on one pooled connection"""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
        self.connection: Optional[asyncpg.Connection] = None

    async def __aenter__(self):
        self.connection = await self.pool.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.connection:
            await self.pool.release(self.connection)
            self.connection = None

    async def run(self, query: str, *args: Any) -> List[dict]:
        """Execute an SQL query and return its rows"""
        if not self.connection:
            raise RuntimeError("Session not initialized. Use async with context.")

        try:
            records = await self.connection.fetch(query, *args)
            return [dict(record) for record in records]
        except Exception as e:
            logger.error(f"Query execution failed: {e}\nQuery: {query}")
            raise


class PostgresDriver:
    """
    Executes Cypher queries against a PostgreSQL database holding a graph
    converted into relational tables

    Args:
        schema: Table mapping the graph was converted with
        host: Database host
        port: Database port
        user: Database user
        password: Database password
        database: Database name
        min_pool_size: Minimum connection pool size
        max_pool_size: Maximum connection pool size
        temp_table_prefix: Prefix of temporary tables created by translations
    """

    def __init__(
        self,
        schema: SchemaMapping,
        host: str = 'localhost',
        port: int = 5433,
        user: str = 'postgres',
        password: str = '',
        database: str = 'postgres',
        min_pool_size: int = 1,
        max_pool_size: int = 10,
        temp_table_prefix: str = DEFAULT_TEMP_TABLE_PREFIX,
    ):
        self.schema = schema
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self._database = database
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size

        self.pool: Optional[asyncpg.Pool] = None
        self.translator = CypherToSQLTranslator(schema, temp_table_prefix=temp_table_prefix)

    async def _init_pool(self):
        """Initialize asyncpg connection pool"""
        if self.pool is None:
            try:
                self.pool = await asyncpg.create_pool(
                    host=self.host,
                    port=self.port,
                    user=self.user,
                    password=self.password,
                    database=self._database,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                )
                logger.info(f"PostgreSQL connection pool created for database: {self._database}")
            except Exception as e:
                logger.error(f"Failed to create connection pool: {e}")
                raise

    async def execute_query(self, cypher_query: str) -> List[dict]:
        """
        Translate a Cypher query and run the resulting statements

        Setup statements (temporary tables, updates, inserts) are executed in
        order on one connection; rows are returned when the last statement is
        a SELECT.

        Args:
            cypher_query: Cypher query string

        Returns:
            List of result dictionaries

        Raises:
            CypherSyntaxError: If the query could not be parsed or decoded
            UnsupportedQueryError: If the clause combination is not supported
        """
        statements = self.translator.translate_statements(cypher_query)
        if statements is None:
            raise CypherSyntaxError(f"Could not translate query: {cypher_query}", cypher_query)
        if statements == UNSUPPORTED:
            raise UnsupportedQueryError(f"Unsupported query: {cypher_query}")
        if not statements:
            logger.debug(f"Nothing to execute for: {cypher_query}")
            return []

        if not self.pool:
            await self._init_pool()

        *setup, final = statements
        try:
            async with self.pool.acquire() as connection:
                try:
                    for statement in setup:
                        logger.debug(f"Executing SQL: {statement}")
                        await connection.execute(statement)

                    logger.debug(f"Executing SQL: {final}")
                    if final.lstrip().upper().startswith('SELECT'):
                        records = await connection.fetch(final)
                        return [dict(record) for record in records]
                    await connection.execute(final)
                    return []
                finally:
                    if setup:
                        # Temporary tables belong to the pooled connection
                        await connection.execute("DISCARD TEMP")
        except Exception as e:
            logger.error(f"Query execution failed: {e}\nQuery: {cypher_query}")
            raise

    async def build_schema(self, drop_existing: bool = False):
        """
        Create the node, edge, label and relationship-type tables

        Args:
            drop_existing: If True, drop the tables first
        """
        if not self.pool:
            await self._init_pool()

        statements = []
        if drop_existing:
            statements.extend(self.schema.drop_table_statements())
        statements.extend(self.schema.create_table_statements())

        async with self.pool.acquire() as connection:
            for statement in statements:
                await connection.execute(statement)
        logger.info(f"Schema installed: {len(statements)} statements")

    def session(self) -> PostgresDriverSession:
        """
        Create a new database session

        Returns:
            PostgresDriverSession instance
        """
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")

        return PostgresDriverSession(self.pool)

    async def close(self):
        """Close the database connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed")

    async def health_check(self) -> bool:
        """
        Check database connectivity

        Returns:
            True if connection is healthy
        """
        try:
            if not self.pool:
                await self._init_pool()

            async with self.pool.acquire() as connection:
                result = await connection.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False
