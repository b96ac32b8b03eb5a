"""Shared fixtures for pg-index-health tests."""

from __future__ import annotations

from datetime import datetime, timezone

import psycopg2
import pytest

from pg_index_health.connection import HighAvailabilityPgConnection, PgConnection, PgHost
from pg_index_health.report import CheckResult, HealthReport
from pg_index_health.sql_reader import read_query
from pg_index_health.models import Column, IndexWithSize, Table, UnusedIndex
from pg_index_health.settings import ALL_PARAMS_QUERY, PARAM_QUERY, ImportantParam


class FakePgConnection(PgConnection):
    """In-memory host returning canned rows keyed by diagnostic.

    Unknown queries return no rows; ``failures`` maps a diagnostic to the
    exception its query raises.
    """

    def __init__(self, name: str = "primary", port: int = 5432, rows=None, failures=None):
        super().__init__(PgHost(name, port, f"host={name} port={port}"))
        self._rows = {read_query(d.sql_file): r for d, r in (rows or {}).items()}
        self._failures = {read_query(d.sql_file): e for d, e in (failures or {}).items()}
        self.executed: list[tuple[str, dict | None]] = []

    def execute_query(self, sql, params=None):
        self.executed.append((sql, params))
        if sql in self._failures:
            raise self._failures[sql]
        return [dict(row) for row in self._rows.get(sql, [])]


class SettingsConnection(FakePgConnection):
    """Host answering parameter queries from the stock defaults plus ``overrides``."""

    def __init__(self, name: str = "primary", overrides=None):
        super().__init__(name)
        self.settings = {p.param_name: p.default_value for p in ImportantParam}
        self.settings.update(overrides or {})

    def execute_query(self, sql, params=None):
        self.executed.append((sql, params))
        if sql == ALL_PARAMS_QUERY:
            return [{"name": k, "setting": v, "description": ""} for k, v in self.settings.items()]
        if sql == PARAM_QUERY:
            name = params["param_name"]
            if name not in self.settings:
                raise psycopg2.ProgrammingError(f'unrecognized configuration parameter "{name}"')
            return [{"setting": self.settings[name]}]
        return []


def make_ha(primary: FakePgConnection, *replicas: FakePgConnection) -> HighAvailabilityPgConnection:
    return HighAvailabilityPgConnection(primary, [primary, *replicas])


def table_row(name: str, size: int = 0) -> dict:
    return {"table_name": name, "table_size": size}


def unused_index_row(table: str, index: str, size: int = 8192, scans: int = 0) -> dict:
    return {"table_name": table, "index_name": index, "index_size": size, "index_scans": scans}


def missing_index_row(table: str, size: int = 8192, seq_scan: int = 1000, index_scan: int = 0) -> dict:
    return {"table_name": table, "table_size": size, "seq_scan": seq_scan, "index_scan": index_scan}


@pytest.fixture
def primary() -> FakePgConnection:
    return FakePgConnection("primary")


@pytest.fixture
def empty_report() -> HealthReport:
    """HealthReport with no results."""
    return HealthReport(
        database="testdb",
        hosts=["primary:5432"],
        timestamp=datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc),
        pg_version="PostgreSQL 17.0",
    )


@pytest.fixture
def sample_report() -> HealthReport:
    """HealthReport with findings, a passing check and an errored check."""
    report = HealthReport(
        database="testdb",
        hosts=["primary:5432", "replica:5432"],
        timestamp=datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc),
        pg_version="PostgreSQL 17.0",
    )

    report.results.append(CheckResult(
        check_name="tables_without_primary_key",
        category="tables",
        description="Tables without a primary key",
        objects=[Table("orders", 16384)],
    ))

    report.results.append(CheckResult(
        check_name="unused_indexes",
        category="indexes",
        description="Indexes not used on any host",
        objects=[UnusedIndex("accounts", "i_accounts_number", 8192, 0),
                 UnusedIndex("clients", "i_clients_last_name", 8192, 2)],
    ))

    report.results.append(CheckResult(
        check_name="columns_with_json_type",
        category="columns",
        description="Columns of type json instead of jsonb",
        objects=[Column("clients", "info", False)],
    ))

    # Passing check
    report.results.append(CheckResult(
        check_name="invalid_indexes",
        category="indexes",
        description="Indexes left invalid by a failed concurrent build",
    ))

    # Errored check
    report.results.append(CheckResult(
        check_name="tables_with_bloat",
        category="tables",
        description="Tables whose estimated bloat reaches the percentage threshold",
        error="Diagnostic 'tables_with_bloat' failed on host primary:5432: OperationalError: timeout",
    ))

    return report


@pytest.fixture
def duplicated_pair() -> tuple[IndexWithSize, IndexWithSize]:
    return (IndexWithSize("accounts", "i_accounts_number_balance", 16384),
            IndexWithSize("accounts", "i_accounts_number", 8192))
