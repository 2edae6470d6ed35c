"""
SQL rendering helpers shared by the clause converters
"""

import logging
import uuid
from typing import Any, Iterable, List, Sequence, Tuple

from ..schema import ColumnType

logger = logging.getLogger(__name__)

# Returned by converters for queries that parse but cannot be translated
UNSUPPORTED = ''

# Dollar-quote tag for PL/pgSQL blocks whose text contains $$
DOLLAR_QUOTE_TAG = 'cypher2sql'

# Rendered for a statement list with nothing to execute
NO_OP_STATEMENT = 'SELECT NULL WHERE FALSE;'


def quote_text(value: str) -> str:
    """Single-quote a text value, doubling embedded quotes"""
    return "'" + value.replace("'", "''") + "'"


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(f"{value} has a fractional part")
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"cannot read {type(value).__name__} as an integer")


def _coerce_text(value: Any) -> str:
    if isinstance(value, (list, tuple, dict)):
        raise TypeError(f"cannot read {type(value).__name__} as text")
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def format_value(value: Any, column_type: ColumnType) -> str:
    """
    Render a Python value as an SQL literal for a column of the given type

    Integers render bare, text single-quoted and text arrays as
    ``ARRAY['a','b']``. A value that cannot be coerced renders as NULL.
    """
    if value is None:
        return 'NULL'
    try:
        if column_type.is_numeric:
            return str(_coerce_int(value))
        if column_type is ColumnType.TEXT_ARRAY:
            if not isinstance(value, (list, tuple)):
                raise TypeError(f"cannot read {type(value).__name__} as a text array")
            if not value:
                return 'ARRAY[]::TEXT[]'
            elements = ['NULL' if v is None else quote_text(_coerce_text(v)) for v in value]
            return f"ARRAY[{','.join(elements)}]"
        return quote_text(_coerce_text(value))
    except (TypeError, ValueError) as e:
        logger.debug(f"Rendering {value!r} as NULL for {column_type.value} column: {e}")
        return 'NULL'


def format_literal(value: Any) -> str:
    """Render an untyped Python value as an SQL literal"""
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return f"ARRAY[{', '.join(format_literal(v) for v in value)}]"
    return quote_text(str(value))


def terminate(sql: str) -> str:
    sql = sql.strip()
    return sql if sql.endswith(';') else sql + ';'


def as_subquery(sql: str) -> str:
    """Strip the statement terminator so the SQL can be embedded"""
    return sql.strip().rstrip(';').rstrip()


def join_statements(statements: Iterable[str]) -> str:
    """Join statements into one script; an empty list renders as a no-op SELECT"""
    rendered = ' '.join(terminate(s) for s in statements)
    return rendered or NO_OP_STATEMENT


def new_temp_table_name(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def create_temp_table(name: str, select_sql: str) -> str:
    return f"CREATE TEMP TABLE {name} AS {as_subquery(select_sql)};"


def dollar_quote(text: str) -> str:
    """Dollar-quote delimiter that does not occur in ``text``"""
    if '$$' not in text:
        return '$$'
    tag = f"${DOLLAR_QUOTE_TAG}$"
    counter = 1
    while tag in text:
        counter += 1
        tag = f"${DOLLAR_QUOTE_TAG}_{counter}$"
    return tag


def plpgsql_loop(declarations: Sequence[Tuple[str, ColumnType]],
                 source_sql: str, body: Sequence[str]) -> str:
    """
    Wrap statements in an anonymous PL/pgSQL block that runs them once per row

    The block is quoted with ``$$`` unless the statements contain it.

    Args:
        declarations: Loop variables and their types, in the order the
            source query returns them
        source_sql: Query producing one row per iteration
        body: Statements executed for each row

    Returns:
        A ``DO`` statement
    """
    declare = ' '.join(f"{name} {column_type.value};" for name, column_type in declarations)
    targets = ', '.join(name for name, _ in declarations)
    statements = ' '.join(terminate(s) for s in body)
    block = (
        f"DECLARE {declare} BEGIN "
        f"FOR {targets} IN {as_subquery(source_sql)} LOOP {statements} END LOOP; "
        f"END"
    )
    quote = dollar_quote(block)
    return f"DO {quote} {block} {quote};"


def qualified(alias: str, column: str) -> str:
    return f"{alias}.{column}"


def unique_name(name: str, taken: List[str]) -> str:
    """Return ``name`` or ``name_<n>`` so that it does not collide with ``taken``"""
    candidate = name
    counter = 1
    while candidate.lower() in (t.lower() for t in taken):
        counter += 1
        candidate = f"{name}_{counter}"
    return candidate
