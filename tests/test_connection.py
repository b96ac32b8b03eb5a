"""Tests for host splitting and cluster topology."""

from __future__ import annotations

import psycopg2
import psycopg2.extensions
import pytest

from conftest import FakePgConnection

from pg_index_health.checks.diagnostic import Diagnostic
from pg_index_health.connection import (
    HighAvailabilityPgConnection,
    PgConnection,
    PgHost,
    build_dsn,
    split_hosts,
)
from pg_index_health.errors import TopologyError


def _hosts(dsns):
    return [(p["host"], p["port"]) for p in map(psycopg2.extensions.parse_dsn, dsns)]


class TestSplitHosts:
    def test_single_host(self):
        dsns = split_hosts("host=db1 port=5433 dbname=app")
        assert _hosts(dsns) == [("db1", "5433")]
        assert psycopg2.extensions.parse_dsn(dsns[0])["dbname"] == "app"

    def test_keyword_multi_host(self):
        dsns = split_hosts("host=db2,db1 port=5433,5432 dbname=app")
        assert _hosts(dsns) == [("db1", "5432"), ("db2", "5433")]

    def test_uri_multi_host(self):
        dsns = split_hosts("postgresql://user@db1:5432,db2:5433/app?target_session_attrs=read-write")
        assert _hosts(dsns) == [("db1", "5432"), ("db2", "5433")]
        for dsn in dsns:
            params = psycopg2.extensions.parse_dsn(dsn)
            assert "target_session_attrs" not in params
            assert params["user"] == "user"

    def test_single_port_shared(self):
        assert _hosts(split_hosts("host=db1,db2 port=6432")) == [("db1", "6432"), ("db2", "6432")]

    def test_default_port(self):
        assert _hosts(split_hosts("host=db1")) == [("db1", "5432")]

    def test_duplicates_removed(self):
        assert len(split_hosts("host=db1,db1 port=5432")) == 1

    def test_port_mismatch(self):
        with pytest.raises(ValueError, match="Cannot match"):
            split_hosts("host=db1,db2,db3 port=1,2")

    def test_blank(self):
        with pytest.raises(ValueError):
            split_hosts(" ")


class TestPgHost:
    def test_from_dsn(self):
        host = PgHost.from_dsn("host=db1 port=5433 dbname=app")
        assert host.display_name == "db1:5433"

    def test_multi_host_rejected(self):
        with pytest.raises(ValueError):
            PgHost.from_dsn("host=db1,db2")

    def test_build_dsn(self):
        params = psycopg2.extensions.parse_dsn(build_dsn("db1", 5433, "app", "me", "secret"))
        assert params == {"host": "db1", "port": "5433", "dbname": "app", "user": "me", "password": "secret"}


class TestHighAvailability:
    def test_primary_only(self):
        primary = FakePgConnection("primary")
        ha = HighAvailabilityPgConnection.of_primary(primary)
        assert ha.connection_to_primary is primary
        assert ha.connections_to_all_hosts == (primary,)

    def test_primary_must_be_in_cluster(self):
        with pytest.raises(ValueError, match="should be present"):
            HighAvailabilityPgConnection(FakePgConnection("primary"), [FakePgConnection("replica")])

    def test_primary_first_then_sorted(self):
        primary = FakePgConnection("m")
        r1, r2 = FakePgConnection("a", 5433), FakePgConnection("a", 5432)
        ha = HighAvailabilityPgConnection(primary, [r1, primary, r2])
        assert ha.connections_to_all_hosts == (primary, r2, r1)

    def test_connections_for(self):
        primary, replica = FakePgConnection("primary"), FakePgConnection("replica")
        ha = HighAvailabilityPgConnection(primary, [primary, replica])
        assert ha.connections_for(Diagnostic.INVALID_INDEXES) == (primary,)
        assert ha.connections_for(Diagnostic.UNUSED_INDEXES) == (primary, replica)

    def test_from_dsns_detects_primary(self, monkeypatch):
        recovery = {"db1": True, "db2": False}

        def fake_execute(self, sql, params=None):
            return [{"is_primary": not recovery[self.host.name]}]

        monkeypatch.setattr(PgConnection, "execute_query", fake_execute)
        ha = HighAvailabilityPgConnection.from_dsns(["host=db1,db2 dbname=app"])
        assert ha.connection_to_primary.host.name == "db2"
        assert [c.host.name for c in ha.connections_to_all_hosts] == ["db2", "db1"]

    def test_from_dsns_requires_one_primary(self, monkeypatch):
        monkeypatch.setattr(PgConnection, "execute_query", lambda self, sql, params=None: [{"is_primary": False}])
        with pytest.raises(TopologyError, match="exactly one primary"):
            HighAvailabilityPgConnection.from_dsn("host=db1,db2")

    def test_unreachable_host_is_fatal(self, monkeypatch):
        def fake_execute(self, sql, params=None):
            if self.host.name == "db2":
                raise psycopg2.OperationalError("could not connect to server")
            return [{"is_primary": True}]

        monkeypatch.setattr(PgConnection, "execute_query", fake_execute)
        with pytest.raises(TopologyError, match="db2:5432 is unreachable"):
            HighAvailabilityPgConnection.from_dsn("host=db1,db2")
