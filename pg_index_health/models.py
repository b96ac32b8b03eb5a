"""Database objects reported by diagnostics.

Every result row of a diagnostic is mapped to one of the frozen dataclasses
below. Objects are compared, hashed and ordered by their type and their
natural key, which is what the cluster-wide merges rely on.

Exclusion predicates never inspect concrete types: they ask an object for
its :class:`Capabilities` instead (table name, sizes, bloat, names of
columns/indexes/constraints/sequences it refers to).
"""

from __future__ import annotations

import abc
import enum
import functools
import re
from dataclasses import dataclass, field
from typing import Iterable

from pg_index_health.context import PgContext, enrich_with
from pg_index_health.validation import not_blank, not_negative, not_none, valid_percent


class PgObjectType(enum.Enum):
    TABLE = "table"
    PARTITIONED_TABLE = "partitioned table"
    INDEX = "index"
    PARTITIONED_INDEX = "partitioned index"
    COLUMN = "column"
    CONSTRAINT = "constraint"
    SEQUENCE = "sequence"
    FUNCTION = "function"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized view"
    OTHER = "other"

    @classmethod
    def value_from(cls, text: str) -> PgObjectType:
        """Parse the catalog spelling of an object type (case-insensitive)."""
        not_none(text, "object_type")
        normalized = text.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown object type: {text}")


class SerialType(enum.Enum):
    SMALL_SERIAL = "smallserial"
    SERIAL = "serial"
    BIG_SERIAL = "bigserial"

    @classmethod
    def value_from(cls, text: str) -> SerialType:
        not_none(text, "serial_type")
        normalized = text.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown serial type: {text}")


class ConstraintType(enum.Enum):
    CHECK = "c"
    FOREIGN_KEY = "f"
    PRIMARY_KEY = "p"
    UNIQUE = "u"
    EXCLUSION = "x"

    @classmethod
    def value_from(cls, text: str) -> ConstraintType:
        not_none(text, "constraint_type")
        normalized = text.strip().lower()
        for member in cls:
            if member.value == normalized or member.name.lower() == normalized:
                return member
        raise ValueError(f"Unknown constraint type: {text}")


@dataclass(frozen=True)
class Bloat:
    size_in_bytes: int
    percentage: float


@dataclass(frozen=True)
class Capabilities:
    """What an object can tell about itself; absent capabilities stay empty."""

    table_name: str | None = None
    table_size_in_bytes: int | None = None
    index_size_in_bytes: int | None = None
    bloat: Bloat | None = None
    column_names: tuple[str, ...] = ()
    index_names: tuple[str, ...] = ()
    constraint_names: tuple[str, ...] = ()
    sequence_names: tuple[str, ...] = ()


@functools.total_ordering
class DbObject(abc.ABC):
    """Base of all reported objects."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Name as reported by the catalog."""

    @property
    @abc.abstractmethod
    def object_type(self) -> PgObjectType:
        pass

    @property
    @abc.abstractmethod
    def natural_key(self) -> tuple:
        """Identity used for ordering and for matching across hosts."""

    def capabilities(self) -> Capabilities:
        return Capabilities()

    def _equality_key(self) -> tuple:
        return self.natural_key

    def __eq__(self, other):
        if not isinstance(other, DbObject):
            return NotImplemented
        return type(self) is type(other) and self._equality_key() == other._equality_key()

    def __hash__(self):
        return hash((type(self).__name__, self._equality_key()))

    def __lt__(self, other):
        if not isinstance(other, DbObject):
            return NotImplemented
        return (type(self).__name__, self.natural_key) < (type(other).__name__, other.natural_key)


# -- tables -----------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Table(DbObject):
    table_name: str
    table_size_in_bytes: int = 0

    def __post_init__(self):
        not_blank(self.table_name, "table_name")
        not_negative(self.table_size_in_bytes, "table_size_in_bytes")

    @property
    def name(self) -> str:
        return self.table_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.TABLE

    @property
    def natural_key(self) -> tuple:
        return (self.table_name,)

    def capabilities(self) -> Capabilities:
        return Capabilities(table_name=self.table_name, table_size_in_bytes=self.table_size_in_bytes)

    @classmethod
    def of(cls, table_name: str, table_size_in_bytes: int = 0,
           pg_context: PgContext | None = None) -> Table:
        return cls(enrich_with(table_name, pg_context), table_size_in_bytes)


class _TableAware(DbObject):
    """Objects wrapping a :class:`Table`."""

    table: Table

    @property
    def table_name(self) -> str:
        return self.table.table_name

    @property
    def table_size_in_bytes(self) -> int:
        return self.table.table_size_in_bytes

    @property
    def name(self) -> str:
        return self.table.table_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.TABLE

    @property
    def natural_key(self) -> tuple:
        return self.table.natural_key


@dataclass(frozen=True, eq=False)
class TableWithBloat(_TableAware):
    table: Table
    bloat_size_in_bytes: int
    bloat_percentage: float

    def __post_init__(self):
        not_none(self.table, "table")
        not_negative(self.bloat_size_in_bytes, "bloat_size_in_bytes")
        valid_percent(self.bloat_percentage, "bloat_percentage")

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            table_size_in_bytes=self.table_size_in_bytes,
            bloat=Bloat(self.bloat_size_in_bytes, self.bloat_percentage),
        )

    @classmethod
    def of(cls, table_name: str, table_size_in_bytes: int, bloat_size_in_bytes: int,
           bloat_percentage: float, pg_context: PgContext | None = None) -> TableWithBloat:
        return cls(Table.of(table_name, table_size_in_bytes, pg_context),
                   bloat_size_in_bytes, bloat_percentage)


@dataclass(frozen=True, eq=False)
class TableWithMissingIndex(_TableAware):
    table: Table
    seq_scans: int
    index_scans: int

    def __post_init__(self):
        not_none(self.table, "table")
        not_negative(self.seq_scans, "seq_scans")
        not_negative(self.index_scans, "index_scans")

    def capabilities(self) -> Capabilities:
        return self.table.capabilities()

    @classmethod
    def of(cls, table_name: str, table_size_in_bytes: int, seq_scans: int, index_scans: int,
           pg_context: PgContext | None = None) -> TableWithMissingIndex:
        return cls(Table.of(table_name, table_size_in_bytes, pg_context), seq_scans, index_scans)


@dataclass(frozen=True, eq=False)
class TableWithColumns(_TableAware):
    table: Table
    columns: tuple[Column, ...] = ()

    def __post_init__(self):
        not_none(self.table, "table")
        columns = tuple(sorted(not_none(self.columns, "columns")))
        for column in columns:
            if column.table_name != self.table.table_name:
                raise ValueError(
                    f"Table name is not the same within given rows: "
                    f"{column.table_name} != {self.table.table_name}"
                )
        object.__setattr__(self, "columns", columns)

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            table_size_in_bytes=self.table_size_in_bytes,
            column_names=tuple(c.column_name for c in self.columns),
        )

    @classmethod
    def of(cls, table_name: str, table_size_in_bytes: int = 0, columns: Iterable[Column] = (),
           pg_context: PgContext | None = None) -> TableWithColumns:
        return cls(Table.of(table_name, table_size_in_bytes, pg_context), tuple(columns))


# -- columns ----------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Column(DbObject):
    table_name: str
    column_name: str
    not_null: bool = False

    def __post_init__(self):
        not_blank(self.table_name, "table_name")
        not_blank(self.column_name, "column_name")

    @property
    def name(self) -> str:
        return self.column_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.COLUMN

    @property
    def nullable(self) -> bool:
        return not self.not_null

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.column_name)

    def _equality_key(self) -> tuple:
        return (self.table_name, self.column_name, self.not_null)

    def capabilities(self) -> Capabilities:
        return Capabilities(table_name=self.table_name, column_names=(self.column_name,))

    @classmethod
    def of_not_null(cls, table_name: str, column_name: str,
                    pg_context: PgContext | None = None) -> Column:
        return cls(enrich_with(table_name, pg_context), column_name, True)

    @classmethod
    def of_nullable(cls, table_name: str, column_name: str,
                    pg_context: PgContext | None = None) -> Column:
        return cls(enrich_with(table_name, pg_context), column_name, False)


@dataclass(frozen=True, eq=False)
class ColumnWithSerialType(DbObject):
    column: Column
    serial_type: SerialType
    sequence_name: str

    def __post_init__(self):
        not_none(self.column, "column")
        not_none(self.serial_type, "serial_type")
        not_blank(self.sequence_name, "sequence_name")

    @property
    def table_name(self) -> str:
        return self.column.table_name

    @property
    def column_name(self) -> str:
        return self.column.column_name

    @property
    def name(self) -> str:
        return self.column.name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.COLUMN

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.column_name, self.sequence_name)

    def _equality_key(self) -> tuple:
        return (self.column._equality_key(), self.serial_type.value, self.sequence_name)

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            column_names=(self.column_name,),
            sequence_names=(self.sequence_name,),
        )

    @classmethod
    def of(cls, column: Column, serial_type: SerialType, sequence_name: str,
           pg_context: PgContext | None = None) -> ColumnWithSerialType:
        return cls(column, serial_type, enrich_with(sequence_name, pg_context))


_COLUMN_INFO = re.compile(r"^\s*(?P<name>.+?)\s*,\s*(?P<not_null>true|false)\s*$", re.IGNORECASE)


def parse_columns(table_name: str, raw_columns: Iterable[str] | None) -> tuple[Column, ...]:
    """Turn the catalog form ``"column_name,true"`` into columns of ``table_name``.

    The trailing flag is the column's not-null attribute.
    """
    not_blank(table_name, "table_name")
    raw = list(raw_columns or ())
    if not raw:
        raise ValueError("Columns array cannot be empty")
    columns = []
    for entry in raw:
        match = _COLUMN_INFO.match(entry or "")
        if match is None:
            raise ValueError(f"Cannot parse column info from {entry}")
        columns.append(Column(table_name, match.group("name"),
                              match.group("not_null").lower() == "true"))
    return tuple(columns)


# -- indexes ----------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Index(DbObject):
    table_name: str
    index_name: str

    def __post_init__(self):
        not_blank(self.table_name, "table_name")
        not_blank(self.index_name, "index_name")

    @property
    def name(self) -> str:
        return self.index_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.INDEX

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.index_name)

    def capabilities(self) -> Capabilities:
        return Capabilities(table_name=self.table_name, index_names=(self.index_name,))

    @classmethod
    def of(cls, table_name: str, index_name: str, pg_context: PgContext | None = None) -> Index:
        return cls(enrich_with(table_name, pg_context), enrich_with(index_name, pg_context))


@dataclass(frozen=True, eq=False)
class IndexWithSize(Index):
    index_size_in_bytes: int

    def __post_init__(self):
        super().__post_init__()
        not_negative(self.index_size_in_bytes, "index_size_in_bytes")

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            index_names=(self.index_name,),
            index_size_in_bytes=self.index_size_in_bytes,
        )

    @classmethod
    def of(cls, table_name: str, index_name: str, index_size_in_bytes: int = 0,
           pg_context: PgContext | None = None) -> IndexWithSize:
        return cls(enrich_with(table_name, pg_context), enrich_with(index_name, pg_context),
                   index_size_in_bytes)


@dataclass(frozen=True, eq=False)
class IndexWithBloat(IndexWithSize):
    bloat_size_in_bytes: int
    bloat_percentage: float

    def __post_init__(self):
        super().__post_init__()
        not_negative(self.bloat_size_in_bytes, "bloat_size_in_bytes")
        valid_percent(self.bloat_percentage, "bloat_percentage")

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            index_names=(self.index_name,),
            index_size_in_bytes=self.index_size_in_bytes,
            bloat=Bloat(self.bloat_size_in_bytes, self.bloat_percentage),
        )

    @classmethod
    def of(cls, table_name: str, index_name: str, index_size_in_bytes: int,
           bloat_size_in_bytes: int, bloat_percentage: float,
           pg_context: PgContext | None = None) -> IndexWithBloat:
        return cls(enrich_with(table_name, pg_context), enrich_with(index_name, pg_context),
                   index_size_in_bytes, bloat_size_in_bytes, bloat_percentage)


@dataclass(frozen=True, eq=False)
class UnusedIndex(IndexWithSize):
    index_scans: int

    def __post_init__(self):
        super().__post_init__()
        not_negative(self.index_scans, "index_scans")

    @classmethod
    def of(cls, table_name: str, index_name: str, index_size_in_bytes: int = 0,
           index_scans: int = 0, pg_context: PgContext | None = None) -> UnusedIndex:
        return cls(enrich_with(table_name, pg_context), enrich_with(index_name, pg_context),
                   index_size_in_bytes, index_scans)


@dataclass(frozen=True, eq=False)
class IndexWithColumns(IndexWithSize):
    columns: tuple[Column, ...]

    def __post_init__(self):
        super().__post_init__()
        columns = tuple(not_none(self.columns, "columns"))
        if not columns:
            raise ValueError("Columns array cannot be empty")
        for column in columns:
            if column.table_name != self.table_name:
                raise ValueError(
                    f"Table name is not the same within given rows: "
                    f"{column.table_name} != {self.table_name}"
                )
        object.__setattr__(self, "columns", columns)

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            index_names=(self.index_name,),
            index_size_in_bytes=self.index_size_in_bytes,
            column_names=tuple(c.column_name for c in self.columns),
        )

    @classmethod
    def of(cls, table_name: str, index_name: str, index_size_in_bytes: int,
           columns: Iterable[Column], pg_context: PgContext | None = None) -> IndexWithColumns:
        return cls(enrich_with(table_name, pg_context), enrich_with(index_name, pg_context),
                   index_size_in_bytes, tuple(columns))


def _same_table(objects: tuple, kind: str) -> str:
    table_names = {o.table_name for o in objects}
    if len(table_names) != 1:
        raise ValueError(f"{kind} should belong to the same table: {sorted(table_names)}")
    return next(iter(table_names))


@dataclass(frozen=True, eq=False)
class DuplicatedIndexes(DbObject):
    """Two or more indexes on one table covering the same columns.

    Members are kept sorted by table, index name and size; two groups are
    equal when their member tuples are equal.
    """

    indexes: tuple[IndexWithSize, ...]

    def __post_init__(self):
        indexes = tuple(sorted(
            not_none(self.indexes, "indexes"),
            key=lambda i: (i.table_name, i.index_name, i.index_size_in_bytes),
        ))
        if len(indexes) < 2:
            raise ValueError("Duplicated indexes should contain at least two rows")
        _same_table(indexes, "Duplicated indexes")
        object.__setattr__(self, "indexes", indexes)

    @property
    def table_name(self) -> str:
        return self.indexes[0].table_name

    @property
    def total_size(self) -> int:
        return sum(i.index_size_in_bytes for i in self.indexes)

    @property
    def index_names(self) -> tuple[str, ...]:
        return tuple(i.index_name for i in self.indexes)

    @property
    def name(self) -> str:
        return ",".join(self.index_names)

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.INDEX

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.name)

    def _equality_key(self) -> tuple:
        return tuple((i.table_name, i.index_name, i.index_size_in_bytes) for i in self.indexes)

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            index_size_in_bytes=self.total_size,
            index_names=self.index_names,
        )

    @classmethod
    def of(cls, indexes: Iterable[IndexWithSize]) -> DuplicatedIndexes:
        return cls(tuple(indexes))

    @classmethod
    def of_text(cls, table_name: str, duplicated_as_string: str,
                pg_context: PgContext | None = None) -> DuplicatedIndexes:
        return cls(parse_duplicated_indexes(table_name, duplicated_as_string, pg_context))


_DUPLICATED_INDEX_ENTRY = re.compile(r"^\s*idx=(?P<name>[^,]+?)\s*,\s*size=(?P<size>\d+)\s*$")


def parse_duplicated_indexes(table_name: str, duplicated_as_string: str,
                             pg_context: PgContext | None = None) -> tuple[IndexWithSize, ...]:
    """Parse ``"idx=name1, size=10; idx=name2, size=20"`` into indexes of one table."""
    not_blank(table_name, "table_name")
    not_blank(duplicated_as_string, "duplicated_as_string")
    indexes = []
    for entry in duplicated_as_string.split(";"):
        match = _DUPLICATED_INDEX_ENTRY.match(entry)
        if match is None:
            raise ValueError(f"Cannot parse duplicated index from {entry.strip()}")
        indexes.append(IndexWithSize.of(table_name, match.group("name"),
                                        int(match.group("size")), pg_context))
    return tuple(indexes)


# -- constraints ------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Constraint(DbObject):
    table_name: str
    constraint_name: str
    constraint_type: ConstraintType

    def __post_init__(self):
        not_blank(self.table_name, "table_name")
        not_blank(self.constraint_name, "constraint_name")
        not_none(self.constraint_type, "constraint_type")

    @property
    def name(self) -> str:
        return self.constraint_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.CONSTRAINT

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.constraint_name)

    def capabilities(self) -> Capabilities:
        return Capabilities(table_name=self.table_name, constraint_names=(self.constraint_name,))

    @classmethod
    def of(cls, table_name: str, constraint_name: str, constraint_type: ConstraintType,
           pg_context: PgContext | None = None) -> Constraint:
        return cls(enrich_with(table_name, pg_context), constraint_name, constraint_type)


@dataclass(frozen=True, eq=False)
class ForeignKey(DbObject):
    table_name: str
    constraint_name: str
    columns: tuple[Column, ...]

    def __post_init__(self):
        not_blank(self.table_name, "table_name")
        not_blank(self.constraint_name, "constraint_name")
        columns = tuple(not_none(self.columns, "columns"))
        if not columns:
            raise ValueError("Columns array cannot be empty")
        for column in columns:
            if column.table_name != self.table_name:
                raise ValueError(
                    f"Table name is not the same within given rows: "
                    f"{column.table_name} != {self.table_name}"
                )
        object.__setattr__(self, "columns", columns)

    @property
    def name(self) -> str:
        return self.constraint_name

    @property
    def constraint_type(self) -> ConstraintType:
        return ConstraintType.FOREIGN_KEY

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.CONSTRAINT

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.constraint_name)

    def _equality_key(self) -> tuple:
        return (self.table_name, self.constraint_name,
                tuple(c._equality_key() for c in self.columns))

    def capabilities(self) -> Capabilities:
        return Capabilities(
            table_name=self.table_name,
            constraint_names=(self.constraint_name,),
            column_names=tuple(c.column_name for c in self.columns),
        )

    @classmethod
    def of(cls, table_name: str, constraint_name: str, columns: Iterable[Column],
           pg_context: PgContext | None = None) -> ForeignKey:
        return cls(enrich_with(table_name, pg_context), constraint_name, tuple(columns))


@dataclass(frozen=True, eq=False)
class DuplicatedForeignKeys(DbObject):
    foreign_keys: tuple[ForeignKey, ...]

    def __post_init__(self):
        foreign_keys = tuple(sorted(not_none(self.foreign_keys, "foreign_keys")))
        if len(foreign_keys) < 2:
            raise ValueError("Duplicated foreign keys should contain at least two rows")
        _same_table(foreign_keys, "Duplicated foreign keys")
        object.__setattr__(self, "foreign_keys", foreign_keys)

    @property
    def table_name(self) -> str:
        return self.foreign_keys[0].table_name

    @property
    def constraint_names(self) -> tuple[str, ...]:
        return tuple(fk.constraint_name for fk in self.foreign_keys)

    @property
    def name(self) -> str:
        return ",".join(self.constraint_names)

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.CONSTRAINT

    @property
    def natural_key(self) -> tuple:
        return (self.table_name, self.name)

    def _equality_key(self) -> tuple:
        return tuple(fk._equality_key() for fk in self.foreign_keys)

    def capabilities(self) -> Capabilities:
        column_names = []
        for fk in self.foreign_keys:
            for column in fk.columns:
                if column.column_name not in column_names:
                    column_names.append(column.column_name)
        return Capabilities(
            table_name=self.table_name,
            constraint_names=self.constraint_names,
            column_names=tuple(column_names),
        )

    @classmethod
    def of(cls, foreign_keys: Iterable[ForeignKey]) -> DuplicatedForeignKeys:
        return cls(tuple(foreign_keys))


# -- functions, sequences, anything else ------------------------------------


@dataclass(frozen=True, eq=False)
class StoredFunction(DbObject):
    function_name: str
    function_signature: str = ""

    def __post_init__(self):
        not_blank(self.function_name, "function_name")
        not_none(self.function_signature, "function_signature")

    @property
    def name(self) -> str:
        return self.function_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.FUNCTION

    @property
    def natural_key(self) -> tuple:
        return (self.function_name, self.function_signature)

    @classmethod
    def of(cls, function_name: str, function_signature: str = "",
           pg_context: PgContext | None = None) -> StoredFunction:
        return cls(enrich_with(function_name, pg_context), function_signature)


@dataclass(frozen=True, eq=False)
class SequenceState(DbObject):
    sequence_name: str
    data_type: str
    remaining_percentage: float

    def __post_init__(self):
        not_blank(self.sequence_name, "sequence_name")
        not_blank(self.data_type, "data_type")
        valid_percent(self.remaining_percentage, "remaining_percentage")

    @property
    def name(self) -> str:
        return self.sequence_name

    @property
    def object_type(self) -> PgObjectType:
        return PgObjectType.SEQUENCE

    @property
    def natural_key(self) -> tuple:
        return (self.sequence_name,)

    def capabilities(self) -> Capabilities:
        return Capabilities(sequence_names=(self.sequence_name,))

    @classmethod
    def of(cls, sequence_name: str, data_type: str, remaining_percentage: float,
           pg_context: PgContext | None = None) -> SequenceState:
        return cls(enrich_with(sequence_name, pg_context), data_type, remaining_percentage)


@dataclass(frozen=True, eq=False)
class AnyObject(DbObject):
    """An object of arbitrary type identified only by name (naming-convention checks)."""

    object_name: str
    kind: PgObjectType = field(default=PgObjectType.OTHER)

    def __post_init__(self):
        not_blank(self.object_name, "object_name")
        not_none(self.kind, "kind")

    @property
    def name(self) -> str:
        return self.object_name

    @property
    def object_type(self) -> PgObjectType:
        return self.kind

    @property
    def natural_key(self) -> tuple:
        return (self.object_name, self.kind.value)

    @classmethod
    def of(cls, object_name: str, kind: PgObjectType,
           pg_context: PgContext | None = None) -> AnyObject:
        return cls(enrich_with(object_name, pg_context), kind)
