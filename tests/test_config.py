"""Tests for configuration loading and merging."""

from __future__ import annotations

import tempfile

import pytest

from pg_index_health.config import (
    CheckConfig,
    Config,
    Exclusions,
    MemoryUnit,
    load_config,
    merge_cli_with_config,
)
from pg_index_health.context import PgContext
from pg_index_health.models import Column, IndexWithBloat, IndexWithSize, Table


def _write_yaml(text: str) -> str:
    with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False, mode="w") as f:
        f.write(text)
        return f.name


class TestCheckConfig:
    """Tests for CheckConfig dataclass."""

    def test_defaults(self):
        cfg = CheckConfig()
        assert cfg.exclude == set()
        assert cfg.include_only is None
        assert cfg.static_only is False


class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.schemas == ["public"]
        assert cfg.bloat_percentage_threshold == 10.0
        assert cfg.exclusions == Exclusions()

    def test_pg_contexts(self):
        cfg = Config(schemas=["public", "Custom"], bloat_percentage_threshold=20.0)
        contexts = cfg.pg_contexts()
        assert [c.schema_name for c in contexts] == ["public", "custom"]
        assert all(c.bloat_percentage_threshold == 20.0 for c in contexts)


class TestMemoryUnit:
    @pytest.mark.parametrize("value, expected", [
        (None, 0),
        (0, 0),
        (1024, 1024),
        ("2048", 2048),
        ("10KB", 10 * 1024),
        ("10 mb", 10 * 1024 ** 2),
        ("1GB", 1024 ** 3),
    ])
    def test_parse_size(self, value, expected):
        assert MemoryUnit.parse_size(value) == expected

    @pytest.mark.parametrize("value", ["ten", "10XB", -1, "-5MB", True])
    def test_invalid_size(self, value):
        with pytest.raises(ValueError):
            MemoryUnit.parse_size(value)

    def test_convert(self):
        assert MemoryUnit.KB.convert_to_bytes(2) == 2048


class TestExclusions:
    def test_default_keeps_everything(self):
        predicate = Exclusions().to_predicate()
        assert predicate(Table("flyway_schema_history", 0))

    def test_all_rules_combined(self):
        predicate = Exclusions(
            tables={"accounts"},
            index_size_threshold=100,
            skip_flyway_tables=True,
        ).to_predicate()
        assert not predicate(Table("accounts"))
        assert not predicate(Table("flyway_schema_history"))
        assert not predicate(IndexWithSize("clients", "i1", 99))
        assert predicate(IndexWithSize("clients", "i1", 100))

    def test_context_applied(self):
        predicate = Exclusions(tables={"accounts"}).to_predicate(PgContext.of("custom"))
        assert not predicate(Table("custom.accounts"))

    def test_object_names_match_unqualified_columns(self):
        predicate = Exclusions(objects={"info"}).to_predicate(PgContext.of("custom"))
        assert not predicate(Column("custom.clients", "info"))
        assert predicate(Column("custom.clients", "id"))

    def test_bloat_thresholds(self):
        predicate = Exclusions(bloat_size_threshold=10, bloat_percentage_threshold=20.0).to_predicate()
        assert not predicate(IndexWithBloat("t", "i", 100, 5, 50.0))

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            Exclusions(bloat_percentage_threshold=150.0)


class TestLoadConfig:
    def test_returns_default_when_no_file(self):
        cfg = load_config(config_path=None, auto_discover=False)
        assert cfg == Config()

    def test_loads_yaml_file(self):
        path = _write_yaml(
            "schemas: [public, custom]\n"
            "bloat_percentage_threshold: 15\n"
            "checks:\n"
            "  exclude: [TABLES_WITHOUT_DESCRIPTION]\n"
            "  static_only: true\n"
            "exclusions:\n"
            "  tables: [accounts]\n"
            "  index_size_threshold: 10MB\n"
            "  skip_liquibase_tables: true\n"
        )
        cfg = load_config(path)
        assert cfg.schemas == ["public", "custom"]
        assert cfg.bloat_percentage_threshold == 15.0
        assert cfg.checks.exclude == {"tables_without_description"}
        assert cfg.checks.static_only is True
        assert cfg.exclusions.tables == {"accounts"}
        assert cfg.exclusions.index_size_threshold == 10 * 1024 ** 2
        assert cfg.exclusions.skip_liquibase_tables is True

    def test_loads_include_only(self):
        cfg = load_config(_write_yaml("checks:\n  include_only: [unused_indexes]\n"))
        assert cfg.checks.include_only == {"unused_indexes"}

    def test_single_schema_string(self):
        assert load_config(_write_yaml("schemas: custom\n")).schemas == ["custom"]

    def test_empty_schemas_rejected(self):
        with pytest.raises(ValueError):
            load_config(_write_yaml("schemas: []\n"))

    def test_file_not_found_raises(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/pg-index-health.yaml")

    def test_empty_yaml_returns_defaults(self):
        assert load_config(_write_yaml("")) == Config()

    def test_auto_discovery_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "pg-index-health.yaml").write_text("schemas: [found]\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().schemas == ["found"]


class TestMergeCliWithConfig:
    def test_cli_exclude_adds_to_config(self):
        cfg = Config(checks=CheckConfig(exclude={"a"}))
        merged = merge_cli_with_config(cfg, cli_exclude={"B"})
        assert merged.checks.exclude == {"a", "b"}

    def test_cli_include_only_overrides_config(self):
        cfg = Config(checks=CheckConfig(include_only={"a"}))
        merged = merge_cli_with_config(cfg, cli_include_only={"b"})
        assert merged.checks.include_only == {"b"}

    def test_cli_schemas_override(self):
        merged = merge_cli_with_config(Config(schemas=["a"]), cli_schemas=["b", "c"])
        assert merged.schemas == ["b", "c"]

    def test_config_schemas_kept(self):
        assert merge_cli_with_config(Config(schemas=["a"])).schemas == ["a"]

    def test_cli_static_only(self):
        assert merge_cli_with_config(Config(), cli_static_only=True).checks.static_only is True

    def test_exclusions_carried(self):
        cfg = Config(exclusions=Exclusions(tables={"accounts"}))
        assert merge_cli_with_config(cfg).exclusions.tables == {"accounts"}
