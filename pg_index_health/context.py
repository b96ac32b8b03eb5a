"""Schema scoping for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass

from pg_index_health.validation import not_blank, valid_percent

DEFAULT_SCHEMA_NAME = "public"
DEFAULT_BLOAT_PERCENTAGE_THRESHOLD = 10.0
DEFAULT_REMAINING_PERCENTAGE_THRESHOLD = 10.0


@dataclass(frozen=True)
class PgContext:
    """Schema name plus the thresholds passed to runtime diagnostics.

    The schema name is bound as a query parameter; it is never spliced into
    SQL text. It is also used to qualify raw object names supplied by callers
    (see :meth:`enrich_with_schema`).
    """

    schema_name: str = DEFAULT_SCHEMA_NAME
    bloat_percentage_threshold: float = DEFAULT_BLOAT_PERCENTAGE_THRESHOLD
    remaining_percentage_threshold: float = DEFAULT_REMAINING_PERCENTAGE_THRESHOLD

    def __post_init__(self):
        object.__setattr__(self, "schema_name", not_blank(self.schema_name, "schema_name").lower())
        valid_percent(self.bloat_percentage_threshold, "bloat_percentage_threshold")
        valid_percent(self.remaining_percentage_threshold, "remaining_percentage_threshold")

    @property
    def is_default_schema(self) -> bool:
        return self.schema_name == DEFAULT_SCHEMA_NAME

    def enrich_with_schema(self, object_name: str) -> str:
        """Qualify a raw object name with this context's schema.

        Objects in ``public`` are reported unqualified by the catalog queries,
        so nothing is added for the default schema. Names already carrying the
        schema prefix are returned unchanged.
        """
        not_blank(object_name, "object_name")
        if self.is_default_schema:
            return object_name
        prefix = self.schema_name + "."
        if object_name.lower().startswith(prefix):
            return object_name
        return prefix + object_name

    @classmethod
    def of_default(cls) -> PgContext:
        return cls()

    @classmethod
    def of(cls, schema_name: str, **thresholds) -> PgContext:
        return cls(schema_name=schema_name, **thresholds)


def enrich_with(object_name: str, pg_context: PgContext | None) -> str:
    """Qualify ``object_name`` when a context is given; return it as-is otherwise."""
    if pg_context is None:
        return object_name
    return pg_context.enrich_with_schema(object_name)
