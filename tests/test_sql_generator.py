"""
Test suite for SQL generation from MATCH ... RETURN queries
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from cypher2sql.cypher import SQLGenerator
from cypher2sql.cypher.ast_nodes import BinaryOp, ComparisonOp, ForEachClause, ListLiteral
from cypher2sql.exceptions import MissingSchemaError, TranslationError
from cypher2sql.schema import ColumnType
from sample_schema import build_schema


class TestSQLGenerator(unittest.TestCase):
    """Test SQL generation"""

    def setUp(self):
        self.generator = SQLGenerator(build_schema())

    def sql(self, cypher):
        decoded = self.generator.convert(cypher)
        self.assertIsNotNone(decoded)
        return decoded.sql_equivalent

    def test_simple_filter(self):
        """Test MATCH over the global node store"""
        self.assertEqual(
            self.sql("MATCH (n) WHERE n.node_id = 492 RETURN n.sys_time;"),
            "SELECT n.sys_time FROM nodes n WHERE n.node_id = 492;",
        )

    def test_labelled_relationship(self):
        """Test label tables joined through the edge store"""
        self.assertEqual(
            self.sql("MATCH (a:Global)-[r:LINKS]->(b:Local) RETURN a.node_id, b.node_id"),
            "SELECT a.node_id, b.node_id AS node_id_2 FROM global a "
            "JOIN edges r ON r.idl = a.id JOIN local b ON b.id = r.idr "
            "WHERE r.type = 'LINKS';",
        )

    def test_incoming_relationship(self):
        self.assertEqual(
            self.sql("MATCH (a:Global)<-[r:OWNS]-(b:Meta) RETURN b.name"),
            "SELECT b.name FROM global a JOIN edges r ON r.idr = a.id "
            "JOIN meta b ON b.id = r.idl WHERE r.type = 'OWNS';",
        )

    def test_undirected_anonymous_relationship(self):
        self.assertEqual(
            self.sql("MATCH (a:Global)--(b) RETURN b.id"),
            "SELECT b.id FROM global a JOIN edges _e0 ON a.id IN (_e0.idl, _e0.idr) "
            "JOIN nodes b ON b.id = CASE WHEN _e0.idl = a.id THEN _e0.idr ELSE _e0.idl END;",
        )

    def test_multiple_relationship_types(self):
        sql = self.sql("MATCH (a:Meta)-[r:LINKS|OWNS]->(b) RETURN r.weight, r.since")

        self.assertIn("WHERE r.type IN ('LINKS', 'OWNS')", sql)
        self.assertTrue(sql.startswith("SELECT r.weight, r.since FROM meta a"))

    def test_cycle_back_to_bound_node(self):
        """A relationship ending at an already bound node adds a join condition"""
        self.assertEqual(
            self.sql("MATCH (a:Global)-[r:LINKS]->(b:Local), (b)-[s:LINKS]->(a) RETURN a.node_id"),
            "SELECT a.node_id FROM global a JOIN edges r ON r.idl = a.id "
            "JOIN local b ON b.id = r.idr JOIN edges s ON s.idl = b.id AND a.id = s.idr "
            "WHERE r.type = 'LINKS' AND s.type = 'LINKS';",
        )

    def test_cross_join(self):
        self.assertEqual(
            self.sql("MATCH (a:Global), (b:Meta) RETURN a.name, b.name"),
            "SELECT a.name, b.name AS name_2 FROM global a CROSS JOIN meta b;",
        )

    def test_compound_label(self):
        self.assertEqual(
            self.sql("MATCH (n:Local:Global) RETURN n.name"),
            "SELECT n.name FROM global_local n;",
        )

    def test_pattern_properties(self):
        """Test property maps in node and relationship patterns"""
        self.assertEqual(
            self.sql(
                "MATCH (a:Global {name: 'hub'})-[r:LINKS {weight: 3}]->(b:Local {node_id: '7'}) "
                "RETURN b.tags"
            ),
            "SELECT b.tags FROM global a JOIN edges r ON r.idl = a.id "
            "JOIN local b ON b.id = r.idr "
            "WHERE a.name = 'hub' AND b.node_id = 7 AND r.type = 'LINKS' AND r.weight = 3;",
        )

    def test_return_whole_node(self):
        """A bare node variable expands to every column of its table"""
        self.assertEqual(
            self.sql("MATCH (n:Meta) RETURN n"),
            "SELECT n.id AS n_id, n.node_id AS n_node_id, n.name AS n_name FROM meta n;",
        )

    def test_count_star(self):
        self.assertEqual(self.sql("MATCH (n:Meta) RETURN count(*)"), "SELECT COUNT(*) AS count FROM meta n;")

    def test_aggregation_groups_by_other_items(self):
        """Test GROUP BY for mixed aggregate and plain items"""
        self.assertEqual(
            self.sql("MATCH (a:Global)-[m:LINKS]->(b:Local) RETURN a.node_id, count(m) AS cnt"),
            "SELECT a.node_id, COUNT(ROW(m.idl, m.idr, m.type)) AS cnt FROM global a "
            "JOIN edges m ON m.idl = a.id JOIN local b ON b.id = m.idr "
            "WHERE m.type = 'LINKS' GROUP BY a.node_id;",
        )

    def test_collect_output_types(self):
        decoded = self.generator.convert("MATCH (n:Global) RETURN collect(n) AS ids, sum(n.node_id) AS total")

        ids, total = decoded.projection
        self.assertEqual(ids.sql, "array_agg(n.id)")
        self.assertTrue(ids.is_list)
        self.assertIs(ids.column_type, ColumnType.LONG)
        self.assertEqual((ids.origin_table, ids.origin_column), ('global', 'id'))
        self.assertEqual(total.aggregate, 'sum')
        self.assertIs(total.column_type, ColumnType.LONG)

    def test_distinct_order_skip_limit(self):
        """Test DISTINCT, ORDER BY an alias, SKIP and LIMIT"""
        self.assertEqual(
            self.sql("MATCH (n:Global) RETURN DISTINCT n.name AS name ORDER BY name DESC SKIP 5 LIMIT 10"),
            "SELECT DISTINCT n.name FROM global n ORDER BY name DESC OFFSET 5 LIMIT 10;",
        )

    def test_order_by_property(self):
        self.assertEqual(
            self.sql("MATCH (n:Global) RETURN n.name ORDER BY n.node_id"),
            "SELECT n.name FROM global n ORDER BY n.node_id ASC;",
        )

    def test_boolean_operators(self):
        """Test OR, NOT and quoting of text literals"""
        self.assertEqual(
            self.sql("MATCH (n:Global) WHERE n.name = \"O'Brien\" OR NOT n.node_id < 3 RETURN n.name"),
            "SELECT n.name FROM global n WHERE (n.name = 'O''Brien' OR NOT (n.node_id < 3));",
        )

    def test_in_list(self):
        self.assertEqual(
            self.sql("MATCH (n:Global) WHERE n.node_id IN [1, 2, 3] RETURN n.name"),
            "SELECT n.name FROM global n WHERE n.node_id IN (1, 2, 3);",
        )

    def test_text_array_values(self):
        """Test literals compared with TEXT[] columns"""
        self.assertEqual(
            self.sql("MATCH (n:Local) WHERE n.tags = ['a', 'b'] RETURN n.node_id"),
            "SELECT n.node_id FROM local n WHERE n.tags = ARRAY['a','b'];",
        )
        self.assertEqual(
            self.sql("MATCH (n:Local) WHERE 'a' IN n.tags RETURN n.node_id"),
            "SELECT n.node_id FROM local n WHERE 'a' = ANY(n.tags);",
        )

    def test_string_predicates(self):
        sql = self.sql(
            "MATCH (n:Global) WHERE n.name CONTAINS 'li' AND n.sys_time STARTS WITH '2020' "
            "AND n.name ENDS WITH 'x' RETURN n.node_id"
        )

        self.assertIn("n.name LIKE '%' || 'li' || '%'", sql)
        self.assertIn("n.sys_time LIKE '2020' || '%'", sql)
        self.assertIn("n.name LIKE '%' || 'x'", sql)

    def test_null_checks(self):
        self.assertEqual(
            self.sql("MATCH (n:Global) WHERE n.name IS NOT NULL RETURN n.node_id"),
            "SELECT n.node_id FROM global n WHERE n.name IS NOT NULL;",
        )

    def test_scalar_function(self):
        self.assertEqual(
            self.sql("MATCH (n:Global) RETURN toLower(n.name)"),
            "SELECT LOWER(n.name) AS tolower FROM global n;",
        )

    def test_decoded_query(self):
        """Test the bindings recorded for a query"""
        decoded = self.generator.convert(
            "MATCH (a:Global)-[r:LINKS]->(b) WHERE a.node_id = 1 AND b.name = 'x' RETURN b.name"
        )

        self.assertEqual([n.alias for n in decoded.nodes], ['a', 'b'])
        self.assertEqual([n.table for n in decoded.nodes], ['global', 'nodes'])
        edge = decoded.edges[0]
        self.assertEqual((edge.source, edge.target, edge.types), ('a', 'b', ('LINKS',)))
        self.assertEqual(edge.filters, ("r.type = 'LINKS'",))
        self.assertIsInstance(decoded.predicate, BinaryOp)
        self.assertEqual(decoded.first_alias, 'a')
        self.assertIsNone(decoded.foreach)

        clause = ForEachClause(variable='x', source=ListLiteral([]), actions=[])
        attached = decoded.with_foreach(clause)
        self.assertIs(attached.foreach, clause)
        self.assertIsNone(decoded.foreach)

    def test_where_clauses_of_several_matches_are_combined(self):
        decoded = self.generator.convert(
            "MATCH (a:Global) WHERE a.node_id = 1 MATCH (b:Meta) WHERE b.node_id = 2 RETURN a.name"
        )

        self.assertIsInstance(decoded.predicate.left, ComparisonOp)
        self.assertTrue(decoded.sql_equivalent.endswith("WHERE a.node_id = 1 AND b.node_id = 2;"))

    def test_unknown_label(self):
        with self.assertRaises(MissingSchemaError):
            self.generator.convert("MATCH (n:Person) RETURN n")

    def test_unknown_property(self):
        with self.assertRaises(MissingSchemaError):
            self.generator.convert("MATCH (n:Meta) RETURN n.tags")

    def test_conflicting_labels(self):
        with self.assertRaises(TranslationError):
            self.generator.convert("MATCH (n:Global), (n:Meta) RETURN n.name")

    def test_not_a_plain_query(self):
        self.assertIsNone(self.generator.convert("MATCH (n) WITH n RETURN n"))
        self.assertIsNone(self.generator.convert("MATCH (n RETURN n"))


if __name__ == '__main__':
    unittest.main()
