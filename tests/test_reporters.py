"""Tests for the JSON and key-value reporters."""

from __future__ import annotations

import json

from pg_index_health.models import DuplicatedIndexes, IndexWithSize
from pg_index_health.reporters import json_reporter, keyvalue_reporter


class TestJsonReporter:
    def test_valid_json(self, sample_report):
        data = json.loads(json_reporter.render(sample_report))
        assert set(data) == {"meta", "summary", "results"}

    def test_meta(self, sample_report):
        meta = json.loads(json_reporter.render(sample_report))["meta"]
        assert meta["tool"] == "pg-index-health"
        assert meta["database"] == "testdb"
        assert meta["hosts"] == ["primary:5432", "replica:5432"]
        assert meta["timestamp"].startswith("2026-01-27T12:00:00")

    def test_summary(self, sample_report):
        summary = json.loads(json_reporter.render(sample_report))["summary"]
        assert summary == {"total_checks": 5, "checks_passed": 1, "checks_failed": 3, "errors": 1}

    def test_objects_serialized(self, sample_report):
        results = json.loads(json_reporter.render(sample_report))["results"]
        unused = next(r for r in results if r["check_name"] == "unused_indexes")
        assert unused["passed"] is False
        first = unused["objects"][0]
        assert first["type"] == "UnusedIndex"
        assert first["object_type"] == "index"
        assert first["index_name"] == "i_accounts_number"
        assert first["index_scans"] == 0

    def test_error_entry(self, sample_report):
        results = json.loads(json_reporter.render(sample_report))["results"]
        errored = next(r for r in results if r["check_name"] == "tables_with_bloat")
        assert errored["error"].startswith("Diagnostic 'tables_with_bloat' failed")
        assert errored["passed"] is False

    def test_nested_objects(self, empty_report, duplicated_pair):
        from pg_index_health.report import CheckResult

        empty_report.results.append(CheckResult(
            check_name="duplicated_indexes",
            category="indexes",
            description="",
            objects=[DuplicatedIndexes.of(duplicated_pair)],
        ))
        results = json.loads(json_reporter.render(empty_report))["results"]
        group = results[0]["objects"][0]
        assert group["name"] == "i_accounts_number,i_accounts_number_balance"
        assert [i["index_name"] for i in group["indexes"]] == ["i_accounts_number", "i_accounts_number_balance"]

    def test_empty_report(self, empty_report):
        data = json.loads(json_reporter.render(empty_report))
        assert data["results"] == []
        assert data["summary"]["total_checks"] == 0


class TestKeyValueReporter:
    def test_lines(self, sample_report):
        lines = keyvalue_reporter.render(sample_report).splitlines()
        assert lines == [
            "tables_without_primary_key:1",
            "unused_indexes:2",
            "columns_with_json_type:1",
            "invalid_indexes:0",
            "tables_with_bloat:0",
        ]

    def test_counts_summed_over_schemas(self, empty_report):
        from pg_index_health.report import CheckResult

        for schema in ("public", "custom"):
            empty_report.results.append(CheckResult(
                check_name="duplicated_indexes",
                category="indexes",
                description="",
                schema_name=schema,
                objects=[IndexWithSize("t", "i", 1)],
            ))
        assert keyvalue_reporter.render(empty_report) == "duplicated_indexes:2\n"

    def test_empty(self, empty_report):
        assert keyvalue_reporter.render(empty_report) == ""
