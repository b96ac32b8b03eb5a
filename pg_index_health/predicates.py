"""Exclusion predicates applied to diagnostic results.

A predicate returns True to keep an object and False to drop it. Predicates
combine with ``&`` and ``|``; any plain callable taking a :class:`DbObject`
may be used wherever a predicate is expected.

Name-based predicates qualify the configured table, index and sequence names
with the context schema (``PgContext.enrich_with_schema``) and compare
case-insensitively. Object, column and constraint names are matched as
given. Objects that lack the capability a predicate looks at always pass it.
"""

from __future__ import annotations

import abc
from typing import Callable, Iterable

from pg_index_health.context import PgContext
from pg_index_health.models import DbObject
from pg_index_health.validation import not_blank, not_negative, not_none, valid_percent

FLYWAY_TABLES = ("flyway_schema_history",)
LIQUIBASE_TABLES = ("databasechangelog", "databasechangeloglock")


class Predicate(abc.ABC):
    """Base class for exclusion predicates."""

    @abc.abstractmethod
    def __call__(self, obj: DbObject) -> bool:
        """Return True to keep ``obj``."""

    def __and__(self, other: Callable[[DbObject], bool]) -> Predicate:
        return _FunctionPredicate(lambda obj: self(obj) and other(obj))

    def __or__(self, other: Callable[[DbObject], bool]) -> Predicate:
        return _FunctionPredicate(lambda obj: self(obj) or other(obj))


class _FunctionPredicate(Predicate):
    def __init__(self, function: Callable[[DbObject], bool]):
        self._function = function

    def __call__(self, obj: DbObject) -> bool:
        return self._function(obj)


keep_all: Predicate = _FunctionPredicate(lambda obj: True)


def all_of(predicates: Iterable[Callable[[DbObject], bool]]) -> Predicate:
    """AND-combine ``predicates``; an empty iterable keeps everything."""
    combined = keep_all
    for predicate in predicates:
        combined = combined & predicate
    return combined


def _normalize_names(names: Iterable[str] | str, pg_context: PgContext | None,
                     argument_name: str, qualify: bool = True) -> frozenset[str]:
    if isinstance(not_none(names, argument_name), str):
        names = [names]
    normalized = set()
    for name in names:
        not_none(name, argument_name)
        if qualify and pg_context is not None:
            name = pg_context.enrich_with_schema(name)
        normalized.add(name.lower())
    return frozenset(normalized)


class _SkipByNames(Predicate):
    """Drops objects for which any of the names returned by :meth:`_names_of` is listed."""

    qualify = True
    argument_name = "names"

    def __init__(self, names: Iterable[str] | str, pg_context: PgContext | None = None):
        self.names = _normalize_names(names, pg_context, self.argument_name, self.qualify)

    @abc.abstractmethod
    def _names_of(self, obj: DbObject) -> Iterable[str]:
        """Names of ``obj`` compared against the configured set."""

    def __call__(self, obj: DbObject) -> bool:
        if not self.names:
            return True
        for name in self._names_of(obj):
            if name is not None and name.lower() in self.names:
                return False
        return True

    @classmethod
    def of_name(cls, name: str, pg_context: PgContext | None = None):
        return cls([not_blank(name, cls.argument_name)], pg_context)

    @classmethod
    def of(cls, names: Iterable[str], pg_context: PgContext | None = None):
        return cls(names, pg_context)

    def __repr__(self):
        return f"{type(self).__name__}({sorted(self.names)!r})"


class SkipDbObjectsByNamePredicate(_SkipByNames):
    """Matches on the object's own name, whatever its type."""

    argument_name = "object_names"
    qualify = False

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return (obj.name,)


class SkipTablesByNamePredicate(_SkipByNames):
    argument_name = "table_names"

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return (obj.capabilities().table_name,)


class SkipIndexesByNamePredicate(_SkipByNames):
    argument_name = "index_names"

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return obj.capabilities().index_names


class SkipByColumnNamePredicate(_SkipByNames):
    argument_name = "column_names"
    qualify = False

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return obj.capabilities().column_names


class SkipByConstraintNamePredicate(_SkipByNames):
    argument_name = "constraint_names"
    qualify = False

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return obj.capabilities().constraint_names


class SkipBySequenceNamePredicate(_SkipByNames):
    argument_name = "sequence_names"

    def _names_of(self, obj: DbObject) -> Iterable[str]:
        return obj.capabilities().sequence_names


class SkipFlywayTablesPredicate(SkipTablesByNamePredicate):
    def __init__(self, pg_context: PgContext | None = None):
        super().__init__(FLYWAY_TABLES, pg_context)

    @classmethod
    def of_default(cls) -> SkipFlywayTablesPredicate:
        return cls()


class SkipLiquibaseTablesPredicate(SkipTablesByNamePredicate):
    def __init__(self, pg_context: PgContext | None = None):
        super().__init__(LIQUIBASE_TABLES, pg_context)

    @classmethod
    def of_default(cls) -> SkipLiquibaseTablesPredicate:
        return cls()


class SkipSmallTablesPredicate(Predicate):
    """Drops tables smaller than the threshold; a zero threshold keeps everything."""

    def __init__(self, threshold_in_bytes: int):
        self.threshold_in_bytes = not_negative(threshold_in_bytes, "threshold_in_bytes")

    def __call__(self, obj: DbObject) -> bool:
        if self.threshold_in_bytes == 0:
            return True
        size = obj.capabilities().table_size_in_bytes
        return size is None or size >= self.threshold_in_bytes

    @classmethod
    def of(cls, threshold_in_bytes: int) -> SkipSmallTablesPredicate:
        return cls(threshold_in_bytes)


class SkipSmallIndexesPredicate(Predicate):
    """Drops indexes smaller than the threshold; a zero threshold keeps everything."""

    def __init__(self, threshold_in_bytes: int):
        self.threshold_in_bytes = not_negative(threshold_in_bytes, "threshold_in_bytes")

    def __call__(self, obj: DbObject) -> bool:
        if self.threshold_in_bytes == 0:
            return True
        size = obj.capabilities().index_size_in_bytes
        return size is None or size >= self.threshold_in_bytes

    @classmethod
    def of(cls, threshold_in_bytes: int) -> SkipSmallIndexesPredicate:
        return cls(threshold_in_bytes)


class SkipBloatUnderThresholdPredicate(Predicate):
    """Keeps bloated objects only when both the size and the percentage reach their thresholds.

    Objects without bloat information always pass.
    """

    def __init__(self, size_threshold_in_bytes: int, percentage_threshold: float):
        self.size_threshold_in_bytes = not_negative(size_threshold_in_bytes, "size_threshold_in_bytes")
        self.percentage_threshold = valid_percent(percentage_threshold, "percentage_threshold")

    def __call__(self, obj: DbObject) -> bool:
        if self.size_threshold_in_bytes == 0 and self.percentage_threshold == 0:
            return True
        bloat = obj.capabilities().bloat
        if bloat is None:
            return True
        return (bloat.size_in_bytes >= self.size_threshold_in_bytes
                and bloat.percentage >= self.percentage_threshold)

    @classmethod
    def of(cls, size_threshold_in_bytes: int, percentage_threshold: float) -> SkipBloatUnderThresholdPredicate:
        return cls(size_threshold_in_bytes, percentage_threshold)
