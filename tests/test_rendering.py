"""
Test suite for SQL value and statement rendering
"""

import re
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from cypher2sql.cypher.rendering import (
    NO_OP_STATEMENT,
    UNSUPPORTED,
    create_temp_table,
    dollar_quote,
    format_literal,
    format_value,
    join_statements,
    new_temp_table_name,
    plpgsql_loop,
    quote_text,
    unique_name,
)
from cypher2sql.schema import ColumnType


class TestFormatValue(unittest.TestCase):
    """Test typed literal rendering"""

    def test_integers(self):
        self.assertEqual(format_value(42, ColumnType.INTEGER), '42')
        self.assertEqual(format_value('17', ColumnType.LONG), '17')
        self.assertEqual(format_value(3.0, ColumnType.INTEGER), '3')

    def test_text(self):
        self.assertEqual(format_value("O'Brien", ColumnType.TEXT), "'O''Brien'")
        self.assertEqual(format_value(5, ColumnType.TEXT), "'5'")

    def test_text_arrays(self):
        self.assertEqual(format_value(['a', 'b'], ColumnType.TEXT_ARRAY), "ARRAY['a','b']")
        self.assertEqual(format_value([], ColumnType.TEXT_ARRAY), "ARRAY[]::TEXT[]")

    def test_uncoercible_values_render_null(self):
        self.assertEqual(format_value('abc', ColumnType.INTEGER), 'NULL')
        self.assertEqual(format_value(2.5, ColumnType.LONG), 'NULL')
        self.assertEqual(format_value(True, ColumnType.INTEGER), 'NULL')
        self.assertEqual(format_value('a', ColumnType.TEXT_ARRAY), 'NULL')
        self.assertEqual(format_value(None, ColumnType.TEXT), 'NULL')

    def test_untyped_literals(self):
        self.assertEqual(format_literal(True), 'TRUE')
        self.assertEqual(format_literal(None), 'NULL')
        self.assertEqual(format_literal([1, 'x']), "ARRAY[1, 'x']")
        self.assertEqual(quote_text("it's"), "'it''s'")


class TestStatements(unittest.TestCase):
    """Test statement helpers"""

    def test_join_statements_terminates_each(self):
        self.assertEqual(join_statements(["SELECT 1", "SELECT 2;"]), "SELECT 1; SELECT 2;")

    def test_empty_statement_list_is_a_no_op(self):
        self.assertEqual(join_statements([]), NO_OP_STATEMENT)
        self.assertNotEqual(join_statements([]), UNSUPPORTED)

    def test_temp_table(self):
        name = new_temp_table_name('with_temp')

        self.assertRegex(name, r'^with_temp_[0-9a-f]{32}$')
        self.assertNotEqual(name, new_temp_table_name('with_temp'))
        self.assertEqual(
            create_temp_table('t1', 'SELECT n.id FROM nodes n;'),
            'CREATE TEMP TABLE t1 AS SELECT n.id FROM nodes n;',
        )

    def test_plpgsql_loop(self):
        sql = plpgsql_loop(
            [('fe_x', ColumnType.LONG), ('fe_a', ColumnType.TEXT)],
            'SELECT a, b FROM t;',
            ['UPDATE nodes SET name = fe_a WHERE id = fe_x'],
        )

        self.assertEqual(
            sql,
            "DO $$ DECLARE fe_x BIGINT; fe_a TEXT; BEGIN FOR fe_x, fe_a IN SELECT a, b FROM t "
            "LOOP UPDATE nodes SET name = fe_a WHERE id = fe_x; END LOOP; END $$;",
        )

    def test_dollar_quote_avoids_body_text(self):
        self.assertEqual(dollar_quote("UPDATE t SET a = 'x' WHERE id = 1"), '$$')
        self.assertEqual(dollar_quote("SET a = 'x$$y'"), '$cypher2sql$')
        self.assertEqual(dollar_quote("SET a = '$$ $cypher2sql$'"), '$cypher2sql_2$')

    def test_plpgsql_loop_with_dollars_in_body(self):
        sql = plpgsql_loop(
            [('fe_x', ColumnType.LONG)],
            'SELECT x FROM t',
            ["UPDATE nodes SET name = 'a$$b' WHERE id = fe_x"],
        )

        self.assertEqual(
            sql,
            "DO $cypher2sql$ DECLARE fe_x BIGINT; BEGIN FOR fe_x IN SELECT x FROM t "
            "LOOP UPDATE nodes SET name = 'a$$b' WHERE id = fe_x; END LOOP; END $cypher2sql$;",
        )
        body = sql.split('$cypher2sql$')[1]
        self.assertIn("'a$$b' WHERE id = fe_x; END LOOP; END", body)

    def test_unique_name(self):
        self.assertEqual(unique_name('name', []), 'name')
        self.assertEqual(unique_name('name', ['name']), 'name_2')
        self.assertEqual(unique_name('Name', ['name', 'name_2']), 'Name_3')


if __name__ == '__main__':
    unittest.main()
