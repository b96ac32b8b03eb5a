"""Catalog of the available diagnostics.

A diagnostic is pure data: the query resource it runs, the model type its
rows are mapped to, the extractor doing the mapping, how results from
several hosts are reconciled and which parameters are bound to the query.
"""

from __future__ import annotations

import enum
from typing import Any, Callable

from pg_index_health.checks import extractors
from pg_index_health.context import PgContext
from pg_index_health.models import (
    AnyObject,
    Column,
    ColumnWithSerialType,
    Constraint,
    DbObject,
    DuplicatedForeignKeys,
    DuplicatedIndexes,
    ForeignKey,
    Index,
    IndexWithBloat,
    IndexWithColumns,
    SequenceState,
    StoredFunction,
    Table,
    TableWithBloat,
    TableWithColumns,
    TableWithMissingIndex,
    UnusedIndex,
)


class MergePolicy(enum.Enum):
    """How per-host results are combined into one cluster-wide answer."""

    PRIMARY_ONLY = "primary_only"
    UNION = "union"
    INTERSECTION = "intersection"

    @property
    def is_cluster_wide(self) -> bool:
        return self is not MergePolicy.PRIMARY_ONLY


class QueryParams(enum.Enum):
    SCHEMA = "schema"
    SCHEMA_AND_BLOAT = "schema_and_bloat"
    SCHEMA_AND_REMAINING_PERCENTAGE = "schema_and_remaining_percentage"

    def bind(self, pg_context: PgContext) -> dict[str, Any]:
        params: dict[str, Any] = {"schema_name_param": pg_context.schema_name}
        if self is QueryParams.SCHEMA_AND_BLOAT:
            params["bloat_percentage_threshold"] = pg_context.bloat_percentage_threshold
        elif self is QueryParams.SCHEMA_AND_REMAINING_PERCENTAGE:
            params["remaining_percentage_threshold"] = pg_context.remaining_percentage_threshold
        return params


_PRIMARY = MergePolicy.PRIMARY_ONLY
_SCHEMA = QueryParams.SCHEMA


class Diagnostic(enum.Enum):
    # name = (sql file, result type, extractor, merge policy, query params, runtime, category, description)
    TABLES_WITH_BLOAT = (
        "tables_with_bloat.sql", TableWithBloat, extractors.table_with_bloat,
        _PRIMARY, QueryParams.SCHEMA_AND_BLOAT, True, "tables",
        "Tables whose estimated bloat reaches the percentage threshold")
    TABLES_WITH_MISSING_INDEXES = (
        "tables_with_missing_indexes.sql", TableWithMissingIndex, extractors.table_with_missing_index,
        MergePolicy.UNION, _SCHEMA, True, "tables",
        "Tables read mostly by sequential scans on any host")
    TABLES_WITHOUT_PRIMARY_KEY = (
        "tables_without_primary_key.sql", Table, extractors.table,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables without a primary key")
    DUPLICATED_INDEXES = (
        "duplicated_indexes.sql", DuplicatedIndexes, extractors.duplicated_indexes,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Indexes completely duplicating each other")
    FOREIGN_KEYS_WITHOUT_INDEX = (
        "foreign_keys_without_index.sql", ForeignKey, extractors.foreign_key,
        _PRIMARY, _SCHEMA, False, "constraints",
        "Foreign keys whose columns are not covered by an index")
    BLOATED_INDEXES = (
        "bloated_indexes.sql", IndexWithBloat, extractors.index_with_bloat,
        _PRIMARY, QueryParams.SCHEMA_AND_BLOAT, True, "indexes",
        "B-tree indexes whose estimated bloat reaches the percentage threshold")
    INDEXES_WITH_NULL_VALUES = (
        "indexes_with_null_values.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Non-unique indexes on nullable columns without a partial predicate")
    INTERSECTED_INDEXES = (
        "intersected_indexes.sql", DuplicatedIndexes, extractors.duplicated_indexes,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Indexes whose column sets overlap")
    INVALID_INDEXES = (
        "invalid_indexes.sql", Index, extractors.index,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Indexes left invalid by a failed concurrent build")
    UNUSED_INDEXES = (
        "unused_indexes.sql", UnusedIndex, extractors.unused_index,
        MergePolicy.INTERSECTION, _SCHEMA, True, "indexes",
        "Indexes not used on any host")
    TABLES_WITHOUT_DESCRIPTION = (
        "tables_without_description.sql", Table, extractors.table,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables without a comment")
    COLUMNS_WITHOUT_DESCRIPTION = (
        "columns_without_description.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns without a comment")
    COLUMNS_WITH_JSON_TYPE = (
        "columns_with_json_type.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns of type json instead of jsonb")
    COLUMNS_WITH_SERIAL_TYPES = (
        "columns_with_serial_types.sql", ColumnWithSerialType, extractors.column_with_serial_type,
        _PRIMARY, _SCHEMA, False, "columns",
        "Non-primary-key columns of serial types")
    FUNCTIONS_WITHOUT_DESCRIPTION = (
        "functions_without_description.sql", StoredFunction, extractors.stored_function,
        _PRIMARY, _SCHEMA, False, "functions",
        "Functions and procedures without a comment")
    INDEXES_WITH_BOOLEAN = (
        "indexes_with_boolean.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Indexes containing boolean columns")
    NOT_VALID_CONSTRAINTS = (
        "not_valid_constraints.sql", Constraint, extractors.constraint,
        _PRIMARY, _SCHEMA, False, "constraints",
        "Check and foreign key constraints not yet validated")
    BTREE_INDEXES_ON_ARRAY_COLUMNS = (
        "btree_indexes_on_array_columns.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "B-tree indexes on array columns")
    SEQUENCE_OVERFLOW = (
        "sequence_overflow.sql", SequenceState, extractors.sequence_state,
        _PRIMARY, QueryParams.SCHEMA_AND_REMAINING_PERCENTAGE, True, "sequences",
        "Sequences close to running out of values")
    PRIMARY_KEYS_WITH_SERIAL_TYPES = (
        "primary_keys_with_serial_types.sql", ColumnWithSerialType, extractors.column_with_serial_type,
        _PRIMARY, _SCHEMA, False, "columns",
        "Primary key columns of serial types")
    DUPLICATED_FOREIGN_KEYS = (
        "duplicated_foreign_keys.sql", DuplicatedForeignKeys, extractors.duplicated_foreign_keys,
        _PRIMARY, _SCHEMA, False, "constraints",
        "Foreign keys completely duplicating each other")
    INTERSECTED_FOREIGN_KEYS = (
        "intersected_foreign_keys.sql", DuplicatedForeignKeys, extractors.duplicated_foreign_keys,
        _PRIMARY, _SCHEMA, False, "constraints",
        "Foreign keys whose column sets overlap")
    POSSIBLE_OBJECT_NAME_OVERFLOW = (
        "possible_object_name_overflow.sql", AnyObject, extractors.any_object,
        _PRIMARY, _SCHEMA, False, "objects",
        "Objects whose names reach max_identifier_length")
    TABLES_NOT_LINKED_TO_OTHERS = (
        "tables_not_linked_to_others.sql", Table, extractors.table,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables neither referencing nor referenced by foreign keys")
    FOREIGN_KEYS_WITH_UNMATCHED_COLUMN_TYPE = (
        "foreign_keys_with_unmatched_column_type.sql", ForeignKey, extractors.foreign_key,
        _PRIMARY, _SCHEMA, False, "constraints",
        "Foreign keys whose column types differ from the referenced columns")
    TABLES_WITH_ZERO_OR_ONE_COLUMN = (
        "tables_with_zero_or_one_column.sql", TableWithColumns, extractors.table_with_columns,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables with zero or one column")
    OBJECTS_NOT_FOLLOWING_NAMING_CONVENTION = (
        "objects_not_following_naming_convention.sql", AnyObject, extractors.any_object,
        _PRIMARY, _SCHEMA, False, "objects",
        "Objects whose names need quoting")
    COLUMNS_NOT_FOLLOWING_NAMING_CONVENTION = (
        "columns_not_following_naming_convention.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns whose names need quoting")
    PRIMARY_KEYS_WITH_VARCHAR = (
        "primary_keys_with_varchar.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Primary keys on varchar or text columns")
    COLUMNS_WITH_FIXED_LENGTH_VARCHAR = (
        "columns_with_fixed_length_varchar.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns of type varchar(n)")
    INDEXES_WITH_UNNECESSARY_WHERE_CLAUSE = (
        "indexes_with_unnecessary_where_clause.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Partial indexes filtering out nulls of not-null columns")
    PRIMARY_KEYS_THAT_MOST_LIKELY_NATURAL_KEYS = (
        "primary_keys_that_most_likely_natural_keys.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Primary keys built on natural rather than surrogate columns")
    COLUMNS_WITH_MONEY_TYPE = (
        "columns_with_money_type.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns of type money")
    INDEXES_WITH_TIMESTAMP_IN_THE_MIDDLE = (
        "indexes_with_timestamp_in_the_middle.sql", IndexWithColumns, extractors.index_with_columns,
        _PRIMARY, _SCHEMA, False, "indexes",
        "Multi-column indexes with a timestamp column before the last position")
    COLUMNS_WITH_TIMESTAMP_OR_TIMETZ_TYPE = (
        "columns_with_timestamp_or_timetz_type.sql", Column, extractors.column,
        _PRIMARY, _SCHEMA, False, "columns",
        "Columns of type timestamp or timetz")
    TABLES_WHERE_PRIMARY_KEY_COLUMNS_NOT_FIRST = (
        "tables_where_primary_key_columns_not_first.sql", Table, extractors.table,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables whose primary key columns do not come first")
    TABLES_WHERE_ALL_COLUMNS_NULLABLE_EXCEPT_PK = (
        "tables_where_all_columns_nullable_except_pk.sql", Table, extractors.table,
        _PRIMARY, _SCHEMA, False, "tables",
        "Tables where every column outside the primary key is nullable")

    def __init__(self, sql_file: str, result_type: type[DbObject],
                 extractor: Callable[..., DbObject], merge_policy: MergePolicy,
                 query_params: QueryParams, runtime: bool, category: str, description: str):
        self.sql_file = sql_file
        self.result_type = result_type
        self.extractor = extractor
        self.merge_policy = merge_policy
        self.query_params = query_params
        self.runtime = runtime
        self.category = category
        self.description = description

    @property
    def check_name(self) -> str:
        return self.name.lower()

    @property
    def is_static(self) -> bool:
        return not self.runtime

    def __str__(self):
        return self.check_name

    def __repr__(self):
        return f"<Diagnostic [{self.category}] {self.check_name} ({self.merge_policy.value})>"


def _validate_catalog() -> None:
    for diagnostic in Diagnostic:
        if diagnostic.merge_policy.is_cluster_wide and not diagnostic.runtime:
            raise ValueError(f"Cluster-wide diagnostic {diagnostic.name} must be a runtime diagnostic")


_validate_catalog()

STANDARD_DIAGNOSTICS: tuple[Diagnostic, ...] = tuple(Diagnostic)
