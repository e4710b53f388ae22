"""
SQL template builder: pure functions from table/column names to statement text.

ZERO I/O. Identifiers come from configuration and are interpolated into SQL,
so every builder validates them first; values are always bound parameters
(``:name``), never interpolated.

The upsert templates are insert-if-absent: a row whose key columns match an
existing target row is left untouched, which makes re-running a transfer a
no-op for rows already delivered.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from transfer_kernel.exceptions import ConfigurationError, InvalidIdentifierError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_QUALIFIED = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def validate_identifier(name: str, allow_schema: bool = False) -> str:
    """Return ``name`` if it is a plain (optionally schema-qualified) identifier."""
    pattern = _QUALIFIED if allow_schema else _IDENTIFIER
    if not isinstance(name, str) or not pattern.match(name):
        raise InvalidIdentifierError(name)
    return name


def bind_name(column: str) -> str:
    """Bind-parameter name used for ``column`` in every template."""
    return validate_identifier(column).lower()


def _check_upsert_columns(table: str, insert_columns: Sequence[str], key_columns: Sequence[str]) -> None:
    validate_identifier(table, allow_schema=True)
    if not insert_columns:
        raise ConfigurationError(f"No insert columns for {table}")
    if not key_columns:
        raise ConfigurationError(f"No key columns for {table}")
    for col in (*insert_columns, *key_columns):
        validate_identifier(col)
    lowered = {c.lower() for c in insert_columns}
    missing = [k for k in key_columns if k.lower() not in lowered]
    if missing:
        raise ConfigurationError(f"Key columns {missing} of {table} are not insert columns")


def build_merge_insert_sql(table: str, insert_columns: Sequence[str], key_columns: Sequence[str]) -> str:
    """
    Oracle ``MERGE`` that inserts only when no row matches on the key columns.

    Bind parameters follow ``bind_name()`` of each insert column.
    """
    _check_upsert_columns(table, insert_columns, key_columns)
    using = ", ".join(f":{bind_name(c)} AS {c}" for c in insert_columns)
    on = " AND ".join(f"tgt.{k} = src.{k}" for k in key_columns)
    cols = ", ".join(insert_columns)
    values = ", ".join(f"src.{c}" for c in insert_columns)
    return (
        f"MERGE INTO {table} tgt\n"
        f"USING (SELECT {using} FROM DUAL) src\n"
        f"ON ({on})\n"
        f"WHEN NOT MATCHED THEN\n"
        f"INSERT ({cols})\n"
        f"VALUES ({values})"
    )


def build_insert_if_absent_sql(table: str, insert_columns: Sequence[str], key_columns: Sequence[str]) -> str:
    """Portable ``INSERT ... SELECT ... WHERE NOT EXISTS`` (SQLite, PostgreSQL)."""
    _check_upsert_columns(table, insert_columns, key_columns)
    cols = ", ".join(insert_columns)
    values = ", ".join(f":{bind_name(c)}" for c in insert_columns)
    match = " AND ".join(f"{k} = :{bind_name(k)}" for k in key_columns)
    return (
        f"INSERT INTO {table} ({cols})\n"
        f"SELECT {values}\n"
        f"WHERE NOT EXISTS (SELECT 1 FROM {table} WHERE {match})"
    )


def build_upsert_sql(
    dialect_name: str,
    table: str,
    insert_columns: Sequence[str],
    key_columns: Sequence[str],
) -> str:
    """Pick the insert-if-absent template for a SQLAlchemy dialect name."""
    if dialect_name == "oracle":
        return build_merge_insert_sql(table, insert_columns, key_columns)
    return build_insert_if_absent_sql(table, insert_columns, key_columns)


# ---------------------------------------------------------------------------
# Pipeline queries
# ---------------------------------------------------------------------------


def build_page_select_sql(table: str, select_columns: Sequence[str], ordering_key: Sequence[str]) -> str:
    """
    Select one rank window of the source table.

    Rows are ranked by ``ROW_NUMBER()`` over the ordering key and filtered
    with ``:lower < rn <= :upper``. The ordering key must be unique or page
    membership changes between runs.
    """
    validate_identifier(table, allow_schema=True)
    for col in (*select_columns, *ordering_key):
        validate_identifier(col)
    cols = ", ".join(select_columns)
    order = ", ".join(ordering_key)
    return (
        f"SELECT {cols} FROM ("
        f"SELECT src.*, ROW_NUMBER() OVER (ORDER BY {order}) AS rn FROM {table} src"
        f") ranked WHERE ranked.rn > :lower AND ranked.rn <= :upper ORDER BY ranked.rn"
    )


def build_duplicate_key_count_sql(table: str, ordering_key: Sequence[str]) -> str:
    """Count ordering-key groups that occur more than once."""
    validate_identifier(table, allow_schema=True)
    for col in ordering_key:
        validate_identifier(col)
    key = ", ".join(ordering_key)
    return (
        f"SELECT COUNT(*) FROM ("
        f"SELECT {key} FROM {table} GROUP BY {key} HAVING COUNT(*) > 1"
        f") dup"
    )


def build_point_select_sql(table: str, select_columns: Sequence[str], key_column: str, param: str) -> str:
    """``SELECT cols FROM table WHERE key = :param`` for lookups and cross-references."""
    validate_identifier(table, allow_schema=True)
    for col in (*select_columns, key_column):
        validate_identifier(col)
    validate_identifier(param)
    return f"SELECT {', '.join(select_columns)} FROM {table} WHERE {key_column} = :{param}"


def build_mark_processed_sql(table: str, flag_column: str, key_columns: Sequence[str]) -> str:
    """
    Flag one source row as transferred.

    Binds ``:flag_value`` plus ``bind_name()`` of each key column.
    """
    validate_identifier(table, allow_schema=True)
    validate_identifier(flag_column)
    match = " AND ".join(f"{k} = :{bind_name(k)}" for k in key_columns)
    return f"UPDATE {table} SET {flag_column} = :flag_value WHERE {match}"
