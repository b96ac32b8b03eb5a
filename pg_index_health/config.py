"""Configuration loading and management for pg-index-health."""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from pg_index_health.context import (
    DEFAULT_BLOAT_PERCENTAGE_THRESHOLD,
    DEFAULT_REMAINING_PERCENTAGE_THRESHOLD,
    DEFAULT_SCHEMA_NAME,
    PgContext,
)
from pg_index_health.predicates import (
    Predicate,
    SkipBloatUnderThresholdPredicate,
    SkipByColumnNamePredicate,
    SkipByConstraintNamePredicate,
    SkipBySequenceNamePredicate,
    SkipDbObjectsByNamePredicate,
    SkipFlywayTablesPredicate,
    SkipIndexesByNamePredicate,
    SkipLiquibaseTablesPredicate,
    SkipSmallIndexesPredicate,
    SkipSmallTablesPredicate,
    SkipTablesByNamePredicate,
    all_of,
)
from pg_index_health.validation import not_negative, valid_percent

CONFIG_FILE_NAME = "pg-index-health.yaml"


class MemoryUnit(enum.Enum):
    """Binary size units accepted in size thresholds."""

    B = 1
    KB = 1024
    MB = 1024 ** 2
    GB = 1024 ** 3
    TB = 1024 ** 4

    def convert_to_bytes(self, amount: int) -> int:
        return not_negative(amount, "amount") * self.value

    @classmethod
    def parse_size(cls, value: int | str | None) -> int:
        """Parse ``10``, ``"10"``, ``"10MB"`` or ``"512 kb"`` into bytes."""
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError(f"Invalid size: {value!r}")
        if isinstance(value, int):
            return not_negative(value, "size")
        match = re.fullmatch(r"\s*(\d+)\s*([a-zA-Z]*)\s*", str(value))
        if match is None:
            raise ValueError(f"Invalid size: {value!r}")
        unit = match.group(2).upper() or "B"
        if unit not in cls.__members__:
            raise ValueError(f"Unknown size unit in {value!r}")
        return cls[unit].convert_to_bytes(int(match.group(1)))


@dataclass
class CheckConfig:
    """Configuration for which diagnostics to include/exclude."""

    exclude: set[str] = field(default_factory=set)
    include_only: set[str] | None = None  # None = no whitelist, run all minus exclude
    static_only: bool = False


@dataclass
class Exclusions:
    """Objects to leave out of the results; every rule must pass for an object to be kept."""

    tables: set[str] = field(default_factory=set)
    indexes: set[str] = field(default_factory=set)
    sequences: set[str] = field(default_factory=set)
    columns: set[str] = field(default_factory=set)
    constraints: set[str] = field(default_factory=set)
    objects: set[str] = field(default_factory=set)
    table_size_threshold: int = 0
    index_size_threshold: int = 0
    bloat_size_threshold: int = 0
    bloat_percentage_threshold: float = 0.0
    skip_flyway_tables: bool = False
    skip_liquibase_tables: bool = False

    def __post_init__(self):
        not_negative(self.table_size_threshold, "table_size_threshold")
        not_negative(self.index_size_threshold, "index_size_threshold")
        not_negative(self.bloat_size_threshold, "bloat_size_threshold")
        valid_percent(self.bloat_percentage_threshold, "bloat_percentage_threshold")

    def to_predicate(self, pg_context: PgContext | None = None) -> Predicate:
        predicates = [
            SkipTablesByNamePredicate(self.tables, pg_context),
            SkipIndexesByNamePredicate(self.indexes, pg_context),
            SkipBySequenceNamePredicate(self.sequences, pg_context),
            SkipByColumnNamePredicate(self.columns, pg_context),
            SkipByConstraintNamePredicate(self.constraints, pg_context),
            SkipDbObjectsByNamePredicate(self.objects, pg_context),
            SkipSmallTablesPredicate(self.table_size_threshold),
            SkipSmallIndexesPredicate(self.index_size_threshold),
            SkipBloatUnderThresholdPredicate(self.bloat_size_threshold, self.bloat_percentage_threshold),
        ]
        if self.skip_flyway_tables:
            predicates.append(SkipFlywayTablesPredicate(pg_context))
        if self.skip_liquibase_tables:
            predicates.append(SkipLiquibaseTablesPredicate(pg_context))
        return all_of(predicates)


@dataclass
class Config:
    """Complete configuration for pg-index-health."""

    schemas: list[str] = field(default_factory=lambda: [DEFAULT_SCHEMA_NAME])
    bloat_percentage_threshold: float = DEFAULT_BLOAT_PERCENTAGE_THRESHOLD
    remaining_percentage_threshold: float = DEFAULT_REMAINING_PERCENTAGE_THRESHOLD
    checks: CheckConfig = field(default_factory=CheckConfig)
    exclusions: Exclusions = field(default_factory=Exclusions)

    def pg_contexts(self) -> list[PgContext]:
        return [
            PgContext(
                schema_name=schema,
                bloat_percentage_threshold=self.bloat_percentage_threshold,
                remaining_percentage_threshold=self.remaining_percentage_threshold,
            )
            for schema in self.schemas
        ]


def find_config_file() -> str | None:
    """Search for pg-index-health.yaml in cwd, then home dir.

    Returns:
        Path to config file if found, None otherwise.
    """
    cwd_config = Path.cwd() / CONFIG_FILE_NAME
    if cwd_config.is_file():
        return str(cwd_config)

    home_config = Path.home() / CONFIG_FILE_NAME
    if home_config.is_file():
        return str(home_config)

    return None


def load_config(config_path: str | None = None, auto_discover: bool = True) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Explicit path to config file. If None and auto_discover is True,
                     searches default locations.
        auto_discover: If True and config_path is None, search for config file.

    Returns:
        Config object. Returns default config if no file found.
    """
    if config_path is None and auto_discover:
        config_path = find_config_file()

    if config_path is None:
        return Config()

    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return _parse_config(data)


def _parse_config(data: dict) -> Config:
    """Parse YAML data into Config object."""
    config = Config()

    if "schemas" in data:
        schemas = data["schemas"]
        config.schemas = [schemas] if isinstance(schemas, str) else list(schemas or [])
        if not config.schemas:
            raise ValueError("At least one schema must be configured")
    if "bloat_percentage_threshold" in data:
        config.bloat_percentage_threshold = float(data["bloat_percentage_threshold"])
    if "remaining_percentage_threshold" in data:
        config.remaining_percentage_threshold = float(data["remaining_percentage_threshold"])

    if "checks" in data:
        config.checks = _parse_check_config(data["checks"] or {})
    if "exclusions" in data:
        config.exclusions = _parse_exclusions(data["exclusions"] or {})

    return config


def _parse_check_config(data: dict) -> CheckConfig:
    """Parse check configuration section."""
    exclude = {name.lower() for name in data.get("exclude") or []}

    include_only = None
    if data.get("include_only") is not None:
        include_only = {name.lower() for name in data["include_only"]}

    return CheckConfig(
        exclude=exclude,
        include_only=include_only,
        static_only=bool(data.get("static_only", False)),
    )


def _parse_exclusions(data: dict) -> Exclusions:
    def names(key: str) -> set[str]:
        return set(data.get(key) or [])

    return Exclusions(
        tables=names("tables"),
        indexes=names("indexes"),
        sequences=names("sequences"),
        columns=names("columns"),
        constraints=names("constraints"),
        objects=names("objects"),
        table_size_threshold=MemoryUnit.parse_size(data.get("table_size_threshold")),
        index_size_threshold=MemoryUnit.parse_size(data.get("index_size_threshold")),
        bloat_size_threshold=MemoryUnit.parse_size(data.get("bloat_size_threshold")),
        bloat_percentage_threshold=float(data.get("bloat_percentage_threshold") or 0.0),
        skip_flyway_tables=bool(data.get("skip_flyway_tables", False)),
        skip_liquibase_tables=bool(data.get("skip_liquibase_tables", False)),
    )


def merge_cli_with_config(
    config: Config,
    cli_schemas: list[str] | None = None,
    cli_exclude: set[str] | None = None,
    cli_include_only: set[str] | None = None,
    cli_static_only: bool = False,
) -> Config:
    """Merge CLI arguments with config file settings.

    CLI arguments take precedence over config file: schemas and include_only
    replace the configured values, exclude adds to them.
    """
    check_cfg = config.checks

    if cli_exclude:
        check_cfg = CheckConfig(
            exclude=check_cfg.exclude | {name.lower() for name in cli_exclude},
            include_only=check_cfg.include_only,
            static_only=check_cfg.static_only,
        )

    if cli_include_only is not None:
        check_cfg = CheckConfig(
            exclude=check_cfg.exclude,
            include_only={name.lower() for name in cli_include_only},
            static_only=check_cfg.static_only,
        )

    if cli_static_only:
        check_cfg = CheckConfig(
            exclude=check_cfg.exclude,
            include_only=check_cfg.include_only,
            static_only=True,
        )

    return Config(
        schemas=list(cli_schemas) if cli_schemas else list(config.schemas),
        bloat_percentage_threshold=config.bloat_percentage_threshold,
        remaining_percentage_threshold=config.remaining_percentage_threshold,
        checks=check_cfg,
        exclusions=config.exclusions,
    )
