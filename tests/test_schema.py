"""
Test suite for the schema mapping
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from cypher2sql.exceptions import MissingSchemaError
from cypher2sql.schema import Column, ColumnType, SchemaMapping, parse_column_definitions
from sample_schema import build_schema


class TestColumnDefinitions(unittest.TestCase):
    """Test parsing of column definition strings"""

    def test_parse_definitions(self):
        columns = parse_column_definitions("node_id INT, sys_time TEXT, tags TEXT[]")

        self.assertEqual(columns, (
            Column('node_id', ColumnType.INTEGER),
            Column('sys_time', ColumnType.TEXT),
            Column('tags', ColumnType.TEXT_ARRAY),
        ))

    def test_type_aliases(self):
        self.assertIs(ColumnType.from_sql('integer'), ColumnType.INTEGER)
        self.assertIs(ColumnType.from_sql('bigint'), ColumnType.LONG)
        self.assertIs(ColumnType.from_sql('varchar'), ColumnType.TEXT)

    def test_invalid_definitions(self):
        with self.assertRaises(ValueError):
            parse_column_definitions("node_id")
        with self.assertRaises(ValueError):
            parse_column_definitions("node_id JSONB")


class TestSchemaMapping(unittest.TestCase):
    """Test label and relationship type lookups"""

    def setUp(self):
        self.schema = build_schema()

    def test_label_tables(self):
        self.assertEqual(self.schema.label_table('Global'), 'global')
        self.assertEqual(self.schema.label_table(['Local', 'Global']), 'global_local')
        self.assertEqual(self.schema.relationship_table('links'), 'e$links')

    def test_label_columns_start_with_id(self):
        columns = self.schema.columns_for_label('Meta')

        self.assertEqual([c.name for c in columns], ['id', 'node_id', 'name'])
        self.assertIs(columns[0].type, ColumnType.LONG)

    def test_global_columns(self):
        self.assertEqual(
            [c.name for c in self.schema.global_node_columns()],
            ['id', 'label', 'node_id', 'sys_time', 'name', 'tags'],
        )
        self.assertEqual(
            [c.name for c in self.schema.global_edge_columns()],
            ['idl', 'idr', 'type', 'weight', 'since'],
        )

    def test_lookups_ignore_case(self):
        self.assertTrue(self.schema.has_label('global'))
        self.assertTrue(self.schema.has_relationship_type('Links'))
        self.assertEqual(self.schema.relationship_type_name('links'), 'LINKS')
        self.assertFalse(self.schema.has_label('Person'))

    def test_unknown_names_raise(self):
        with self.assertRaises(MissingSchemaError):
            self.schema.columns_for_label('Person')
        with self.assertRaises(MissingSchemaError):
            self.schema.columns_for_relationship_type('KNOWS')
        with self.assertRaises(MissingSchemaError):
            self.schema.columns_for_table('people')

    def test_columns_for_table(self):
        self.assertEqual(self.schema.columns_for_table('nodes'), self.schema.global_node_columns())
        self.assertEqual(self.schema.columns_for_table('edges'), self.schema.global_edge_columns())
        self.assertEqual(
            self.schema.columns_for_table('global_local'),
            self.schema.columns_for_label('Global, Local'),
        )

    def test_create_table_statements(self):
        statements = self.schema.create_table_statements()

        self.assertEqual(
            statements[0],
            "CREATE TABLE nodes(id BIGINT, label TEXT, node_id INT, sys_time TEXT, name TEXT, tags TEXT[]);",
        )
        self.assertEqual(
            statements[1],
            "CREATE TABLE edges(idl BIGINT, idr BIGINT, type TEXT, weight INT, since TEXT);",
        )
        self.assertIn("CREATE TABLE meta(id BIGINT, node_id INT, name TEXT);", statements)
        self.assertIn(
            "CREATE TABLE e$owns(idl BIGINT, idr BIGINT, type TEXT, since TEXT);", statements
        )
        self.assertEqual(len(statements), 2 + 4 + 2)

    def test_drop_table_statements(self):
        statements = self.schema.drop_table_statements()

        self.assertEqual(statements[0], "DROP TABLE IF EXISTS nodes;")
        self.assertIn("DROP TABLE IF EXISTS global_local;", statements)

    def test_explicit_global_columns(self):
        schema = SchemaMapping.from_definitions(
            labels={'Person': 'name TEXT'},
            node_columns='name TEXT, age INT',
        )

        self.assertEqual(
            [c.name for c in schema.global_node_columns()], ['id', 'label', 'name', 'age']
        )


if __name__ == '__main__':
    unittest.main()
