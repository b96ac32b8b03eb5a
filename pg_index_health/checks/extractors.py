"""Row extractors: one function per result shape.

Each extractor takes a result row (a mapping from column name to value, as
produced by ``RealDictCursor``) and the :class:`PgContext` of the check, and
returns a model object. A row that does not match the expected shape raises
``KeyError``, ``ValueError`` or ``TypeError``.
"""

from __future__ import annotations

from typing import Any, Mapping

from pg_index_health.context import PgContext
from pg_index_health.models import (
    AnyObject,
    Column,
    ColumnWithSerialType,
    Constraint,
    ConstraintType,
    DuplicatedForeignKeys,
    DuplicatedIndexes,
    ForeignKey,
    Index,
    IndexWithBloat,
    IndexWithColumns,
    PgObjectType,
    SequenceState,
    SerialType,
    StoredFunction,
    Table,
    TableWithBloat,
    TableWithColumns,
    TableWithMissingIndex,
    UnusedIndex,
    parse_columns,
)

Row = Mapping[str, Any]


def _int(row: Row, key: str) -> int:
    value = row[key]
    if value is None:
        raise TypeError(f"Column {key} cannot be null")
    return int(value)


def _float(row: Row, key: str) -> float:
    value = row[key]
    if value is None:
        raise TypeError(f"Column {key} cannot be null")
    return float(value)


def _bool(row: Row, key: str) -> bool:
    value = row[key]
    if isinstance(value, str):
        return value.strip().lower() in ("t", "true")
    if value is None:
        raise TypeError(f"Column {key} cannot be null")
    return bool(value)


def _columns(row: Row, table_name: str, key: str = "columns"):
    return parse_columns(table_name, row[key])


def table(row: Row, pg_context: PgContext) -> Table:
    return Table.of(row["table_name"], _int(row, "table_size"), pg_context)


def table_with_bloat(row: Row, pg_context: PgContext) -> TableWithBloat:
    return TableWithBloat.of(
        row["table_name"],
        _int(row, "table_size"),
        _int(row, "bloat_size"),
        _float(row, "bloat_percentage"),
        pg_context,
    )


def table_with_missing_index(row: Row, pg_context: PgContext) -> TableWithMissingIndex:
    return TableWithMissingIndex.of(
        row["table_name"],
        _int(row, "table_size"),
        _int(row, "seq_scan"),
        _int(row, "index_scan"),
        pg_context,
    )


def table_with_columns(row: Row, pg_context: PgContext) -> TableWithColumns:
    result = Table.of(row["table_name"], _int(row, "table_size"), pg_context)
    raw_columns = row.get("columns") or ()
    columns = parse_columns(result.table_name, raw_columns) if raw_columns else ()
    return TableWithColumns(result, columns)


def index(row: Row, pg_context: PgContext) -> Index:
    return Index.of(row["table_name"], row["index_name"], pg_context)


def index_with_bloat(row: Row, pg_context: PgContext) -> IndexWithBloat:
    return IndexWithBloat.of(
        row["table_name"],
        row["index_name"],
        _int(row, "index_size"),
        _int(row, "bloat_size"),
        _float(row, "bloat_percentage"),
        pg_context,
    )


def unused_index(row: Row, pg_context: PgContext) -> UnusedIndex:
    return UnusedIndex.of(
        row["table_name"],
        row["index_name"],
        _int(row, "index_size"),
        _int(row, "index_scans"),
        pg_context,
    )


def index_with_columns(row: Row, pg_context: PgContext) -> IndexWithColumns:
    table_name = pg_context.enrich_with_schema(row["table_name"])
    return IndexWithColumns.of(
        table_name,
        row["index_name"],
        _int(row, "index_size"),
        _columns(row, table_name),
        pg_context,
    )


def duplicated_indexes(row: Row, pg_context: PgContext) -> DuplicatedIndexes:
    return DuplicatedIndexes.of_text(row["table_name"], row["duplicated_indexes"], pg_context)


def column(row: Row, pg_context: PgContext) -> Column:
    if _bool(row, "column_not_null"):
        return Column.of_not_null(row["table_name"], row["column_name"], pg_context)
    return Column.of_nullable(row["table_name"], row["column_name"], pg_context)


def column_with_serial_type(row: Row, pg_context: PgContext) -> ColumnWithSerialType:
    return ColumnWithSerialType.of(
        column(row, pg_context),
        SerialType.value_from(row["column_type"]),
        row["sequence_name"],
        pg_context,
    )


def constraint(row: Row, pg_context: PgContext) -> Constraint:
    return Constraint.of(
        row["table_name"],
        row["constraint_name"],
        ConstraintType.value_from(row["constraint_type"]),
        pg_context,
    )


def foreign_key(row: Row, pg_context: PgContext) -> ForeignKey:
    table_name = pg_context.enrich_with_schema(row["table_name"])
    return ForeignKey.of(table_name, row["constraint_name"], _columns(row, table_name), pg_context)


def duplicated_foreign_keys(row: Row, pg_context: PgContext) -> DuplicatedForeignKeys:
    table_name = pg_context.enrich_with_schema(row["table_name"])
    first = ForeignKey.of(table_name, row["constraint_name"], _columns(row, table_name))
    second = ForeignKey.of(
        table_name,
        row["duplicate_constraint_name"],
        _columns(row, table_name, "duplicate_constraint_columns"),
    )
    return DuplicatedForeignKeys.of((first, second))


def stored_function(row: Row, pg_context: PgContext) -> StoredFunction:
    return StoredFunction.of(row["function_name"], row.get("function_signature") or "", pg_context)


def sequence_state(row: Row, pg_context: PgContext) -> SequenceState:
    return SequenceState.of(
        row["sequence_name"],
        row["data_type"],
        _float(row, "remaining_percentage"),
        pg_context,
    )


def any_object(row: Row, pg_context: PgContext) -> AnyObject:
    return AnyObject.of(row["object_name"], PgObjectType.value_from(row["object_type"]), pg_context)
