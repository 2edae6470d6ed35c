"""
Complete example demonstrating how to run Cypher against the converted tables.

This example shows:
1. Setting up the PostgreSQL driver with a schema mapping
2. Creating the node, edge and label tables
3. Loading a few rows with plain SQL
4. Querying and updating them with Cypher through execute_query()
"""

import asyncio
import logging

from cypher2sql import PostgresDriver, SchemaMapping, TranslationError

SCHEMA = SchemaMapping.from_definitions(
    labels={
        'Global': 'node_id INT, sys_time TEXT, name TEXT',
        'Local': 'node_id INT, sys_time TEXT, tags TEXT[]',
    },
    relationship_types={'LINKS': 'weight INT'},
)

ROWS = [
    "INSERT INTO nodes (id, label, node_id, name) VALUES (1, 'Global', 10, 'hub')",
    "INSERT INTO nodes (id, label, node_id, tags) VALUES (2, 'Local', 20, ARRAY['a','b'])",
    "INSERT INTO nodes (id, label, node_id, tags) VALUES (3, 'Local', 30, ARRAY['b'])",
    "INSERT INTO global (id, node_id, name) VALUES (1, 10, 'hub')",
    "INSERT INTO local (id, node_id, tags) VALUES (2, 20, ARRAY['a','b']), (3, 30, ARRAY['b'])",
    "INSERT INTO edges (idl, idr, type, weight) VALUES (1, 2, 'LINKS', 5), (1, 3, 'LINKS', 1)",
]


async def main():
    driver = PostgresDriver(
        SCHEMA,
        host='localhost',
        port=5433,
        user='postgres',
        password='postgres',
        database='postgres',
    )

    try:
        await driver.build_schema(drop_existing=True)
        print("✓ Tables created\n")

        async with driver.session() as session:
            for statement in ROWS:
                await session.run(statement)
        print("✓ Sample rows loaded\n")

        queries = [
            "MATCH (a:Global)-[r:LINKS]->(b:Local) WHERE r.weight > 2 RETURN a.name, b.node_id",
            "MATCH (a:Global)-[r:LINKS]->(b:Local) WITH a, count(r) AS links RETURN a.name, links",
            "MATCH (b:Local) WHERE 'a' IN b.tags RETURN b.node_id",
            "MATCH (a:Global) WITH a FOREACH (x IN [2, 3] | CREATE (x)-[:LINKS {weight: 0}]->(a))",
            "MATCH (a)-[r:LINKS]->(b:Global) RETURN count(r) AS backlinks",
        ]
        for cypher in queries:
            print(f"Cypher: {cypher}")
            try:
                rows = await driver.execute_query(cypher)
            except TranslationError as e:
                print(f"✗ {e}\n")
                continue
            print(f"SQL:    {driver.translator.translate(cypher)}")
            for row in rows:
                print(f"  {row}")
            print()
    finally:
        await driver.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
