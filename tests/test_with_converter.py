"""
Test suite for MATCH ... WITH ... RETURN translation
"""

import re
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from cypher2sql.cypher import SQLGenerator, StagedQuery, WithConverter
from sample_schema import build_schema

TEMP_TABLE = re.compile(r"CREATE TEMP TABLE (with_temp_[0-9a-f]{32}) AS ")

STAGE_ONE = (
    "SELECT a.id AS a_id, a.node_id AS a_node_id, a.sys_time AS a_sys_time, a.name AS a_name, "
    "COUNT(ROW(m.idl, m.idr, m.type)) AS cnt FROM global a "
    "JOIN edges m ON m.idl = a.id JOIN local b ON b.id = m.idr "
    "WHERE m.type = 'LINKS' GROUP BY a.id, a.node_id, a.sys_time, a.name"
)


class TestWithConverter(unittest.TestCase):
    """Test two-stage WITH translation"""

    def setUp(self):
        self.converter = WithConverter(SQLGenerator(build_schema()))

    def split(self, sql):
        match = TEMP_TABLE.match(sql)
        self.assertIsNotNone(match, sql)
        return match.group(1), sql[match.end():]

    def test_with_where(self):
        """WITH ... WHERE filters the materialized projection"""
        sql = self.converter.translate(
            "MATCH (a:Global)-[m:LINKS]->(b:Local) WITH a, count(m) AS cnt "
            "WHERE cnt >= 2 RETURN a.node_id, cnt"
        )

        table, rest = self.split(sql)
        self.assertEqual(
            rest,
            f"{STAGE_ONE}; SELECT a.a_node_id AS node_id, a.cnt FROM {table} a WHERE a.cnt >= 2;",
        )

    def test_return_order_by(self):
        """RETURN ... ORDER BY sorts the second stage"""
        sql = self.converter.translate(
            "MATCH (a:Global)-[m:LINKS]->(b:Local) WITH a, count(m) AS cnt "
            "RETURN a.name, cnt ORDER BY cnt DESC"
        )

        table, rest = self.split(sql)
        self.assertEqual(
            rest,
            f"{STAGE_ONE}; SELECT a.a_name AS name, a.cnt FROM {table} a ORDER BY cnt DESC;",
        )

    def test_with_order_by_applies_to_result(self):
        sql = self.converter.translate(
            "MATCH (a:Global)-[m:LINKS]->(b:Local) WITH a, count(m) AS cnt ORDER BY cnt DESC LIMIT 3 "
            "RETURN a.name, cnt"
        )

        table, rest = self.split(sql)
        self.assertIn(f"{STAGE_ONE} ORDER BY cnt DESC LIMIT 3;", rest)
        self.assertTrue(rest.endswith(f"FROM {table} a ORDER BY cnt DESC;"))

    def test_renamed_property(self):
        sql = self.converter.translate("MATCH (n:Meta) WITH n.name AS nm RETURN nm")

        table, rest = self.split(sql)
        self.assertEqual(rest, f"SELECT n.name AS nm FROM meta n; SELECT n.nm FROM {table} n;")

    def test_whole_node_passes_through(self):
        sql = self.converter.translate("MATCH (n:Meta) WITH n WHERE n.node_id > 4 RETURN n")

        table, rest = self.split(sql)
        self.assertTrue(rest.endswith(
            f"SELECT n.n_id, n.n_node_id, n.n_name FROM {table} n WHERE n.n_node_id > 4;"
        ))

    def test_where_and_order_by_unsupported(self):
        self.assertEqual(
            self.converter.translate(
                "MATCH (a:Global) WITH a.name AS name WHERE name = 'x' RETURN name ORDER BY name"
            ),
            "",
        )
        self.assertEqual(
            self.converter.translate(
                "MATCH (a:Global) WITH a.name AS name WHERE name = 'x' ORDER BY name RETURN name"
            ),
            "",
        )

    def test_unsupported_shapes(self):
        self.assertEqual(self.converter.translate("MATCH (a) WITH a WITH a RETURN a"), "")
        self.assertEqual(self.converter.translate("MATCH (a) WITH a MATCH (b) RETURN a"), "")

    def test_syntax_error(self):
        self.assertIsNone(self.converter.translate("MATCH (a WITH a RETURN a"))

    def test_staged_query(self):
        parser = self.converter.generator.parser
        staged = self.converter.build(parser.parse("MATCH (n:Meta) WITH n.name AS nm RETURN nm"))

        self.assertIsInstance(staged, StagedQuery)
        self.assertEqual(len(staged.setup), 1)
        self.assertEqual(len(staged.statements), 2)
        self.assertEqual(staged.final.projection[0].name, 'nm')

    def test_temp_tables_are_unique(self):
        query = "MATCH (n:Meta) WITH n.name AS nm RETURN nm"

        first, _ = self.split(self.converter.translate(query))
        second, _ = self.split(self.converter.translate(query))
        self.assertNotEqual(first, second)


if __name__ == '__main__':
    unittest.main()
