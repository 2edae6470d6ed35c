"""
Examples demonstrating Cypher to SQL translation
Run these to see how Cypher queries are translated to PostgreSQL statements
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import cypher2sql
sys.path.insert(0, str(Path(__file__).parent.parent))

from cypher2sql import CypherToSQLTranslator, SchemaMapping, TranslationError

SCHEMA = SchemaMapping.from_definitions(
    labels={
        'Person': 'name TEXT, age INT, city TEXT',
        'Company': 'name TEXT, founded INT',
        'Person, Employee': 'name TEXT, salary INT',
        'Tagged': 'name TEXT, tags TEXT[]',
    },
    relationship_types={
        'KNOWS': 'since INT',
        'WORKS_AT': 'role TEXT',
    },
)


def print_translation(translator: CypherToSQLTranslator, title: str, cypher: str):
    """Helper to show Cypher to SQL translation"""
    print(f"\n{'='*80}")
    print(f"Example: {title}")
    print(f"{'='*80}")
    print(f"\nCypher Query:")
    print(cypher.strip())

    try:
        statements = translator.translate_statements(cypher)
    except TranslationError as e:
        print(f"\nError: {e}")
        return

    if statements is None:
        print("\nQuery could not be parsed")
    elif statements == "":
        print("\nQuery is not supported")
    else:
        print(f"\nGenerated SQL:")
        for statement in statements:
            print(statement)


def main():
    """Run all examples"""
    translator = CypherToSQLTranslator(SCHEMA)

    print("Tables:")
    for statement in SCHEMA.create_table_statements():
        print(statement)

    # Example 1: Simple MATCH
    print_translation(
        translator,
        "Simple Node Match",
        "MATCH (n:Person) RETURN n.name, n.age"
    )

    # Example 2: Relationship traversal
    print_translation(
        translator,
        "Relationship Traversal",
        """
        MATCH (a:Person)-[r:KNOWS]->(b:Person)
        WHERE a.age > 25
        RETURN a.name AS person, b.name AS friend
        """
    )

    # Example 3: Undirected relationship over the global node store
    print_translation(
        translator,
        "Undirected Relationship",
        "MATCH (c:Company)--(x) RETURN DISTINCT x.name ORDER BY x.name LIMIT 10"
    )

    # Example 4: Aggregation
    print_translation(
        translator,
        "Aggregation",
        """
        MATCH (p:Person)-[:WORKS_AT]->(c:Company)
        RETURN c.name, count(p) AS employees
        ORDER BY employees DESC
        """
    )

    # Example 5: WITH clause (query chaining)
    print_translation(
        translator,
        "Query Chaining with WITH",
        """
        MATCH (p:Person)-[k:KNOWS]->(friend:Person)
        WITH p, count(k) AS friends
        WHERE friends > 5
        RETURN p.name, friends
        """
    )

    # Example 6: Compound labels
    print_translation(
        translator,
        "Compound Label",
        "MATCH (e:Employee:Person) WHERE e.salary >= 50000 RETURN e"
    )

    # Example 7: Text arrays
    print_translation(
        translator,
        "Array Membership",
        "MATCH (t:Tagged) WHERE 'graph' IN t.tags RETURN t.name"
    )

    # Example 8: FOREACH over a literal list
    print_translation(
        translator,
        "FOREACH Over Literal Ids",
        """
        MATCH (c:Company {name: 'Acme'})
        WITH c
        FOREACH (id IN [1, 2, 3] | CREATE (id)-[:WORKS_AT {role: 'engineer'}]->(c))
        """
    )

    # Example 9: FOREACH over collected nodes
    print_translation(
        translator,
        "FOREACH Over Collected Nodes",
        """
        MATCH (p:Person)
        WHERE p.age > 65
        WITH collect(p) AS retirees
        FOREACH (r IN retirees | SET r.city = 'Lisbon')
        """
    )

    # Example 10: Unsupported combination
    print_translation(
        translator,
        "WITH Followed by WHERE and ORDER BY",
        """
        MATCH (p:Person)
        WITH p.name AS name, p.age AS age
        WHERE age > 30
        RETURN name ORDER BY name
        """
    )


if __name__ == '__main__':
    main()
