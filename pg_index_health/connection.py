"""Database connection management and cluster topology."""

from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from pg_index_health.errors import TopologyError
from pg_index_health.validation import not_blank, not_none

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5432


def connect(
    host: str | None = None,
    port: int | None = None,
    dbname: str | None = None,
    user: str | None = None,
    password: str | None = None,
    dsn: str | None = None,
) -> psycopg2.extensions.connection:
    """Create a read-only database connection from explicit args or a DSN string.

    Falls back to standard PG* environment variables.
    """
    if dsn:
        conn = psycopg2.connect(dsn)
    else:
        conn = psycopg2.connect(build_dsn(host, port, dbname, user, password))

    conn.set_session(readonly=True, autocommit=True)
    return conn


def build_dsn(
    host: str | None = None,
    port: int | None = None,
    dbname: str | None = None,
    user: str | None = None,
    password: str | None = None,
) -> str:
    """Assemble a libpq DSN from individual connection arguments."""
    params: dict[str, Any] = {}
    if host:
        params["host"] = host
    if port:
        params["port"] = port
    if dbname:
        params["dbname"] = dbname
    if user:
        params["user"] = user
    if password:
        params["password"] = password
    elif os.environ.get("PGPASSWORD"):
        params["password"] = os.environ["PGPASSWORD"]
    return psycopg2.extensions.make_dsn(**params)


def split_hosts(dsn: str) -> list[str]:
    """Split a multi-host DSN or URI into one DSN per host.

    ``host=h1,h2 port=5432,5433`` and ``postgresql://h1:5432,h2:5433/db`` both
    yield one DSN per host. ``target_session_attrs`` is dropped since every
    host is addressed directly. The result is sorted and free of duplicates.
    """
    params = psycopg2.extensions.parse_dsn(not_blank(dsn, "dsn"))
    params.pop("target_session_attrs", None)
    hosts = [h.strip() for h in params.pop("host", "").split(",") if h.strip()] or ["localhost"]
    ports = [p.strip() for p in str(params.pop("port", "")).split(",") if p.strip()]
    if len(ports) > 1 and len(ports) != len(hosts):
        raise ValueError(f"Cannot match {len(ports)} ports to {len(hosts)} hosts")
    if not ports:
        ports = [str(DEFAULT_PORT)]
    if len(ports) == 1:
        ports = ports * len(hosts)

    pairs = sorted({(host, int(port)) for host, port in zip(hosts, ports)})
    return [psycopg2.extensions.make_dsn(host=host, port=port, **params) for host, port in pairs]


@dataclass(frozen=True)
class PgHost:
    name: str
    port: int = DEFAULT_PORT
    dsn: str = ""
    can_be_primary: bool = True

    def __post_init__(self):
        not_blank(self.name, "name")

    @property
    def display_name(self) -> str:
        return f"{self.name}:{self.port}"

    @classmethod
    def from_dsn(cls, dsn: str, can_be_primary: bool = True) -> PgHost:
        params = psycopg2.extensions.parse_dsn(not_blank(dsn, "dsn"))
        host = params.get("host") or "localhost"
        if "," in host:
            raise ValueError(f"DSN addresses more than one host: {host}")
        return cls(host, int(params.get("port") or DEFAULT_PORT), dsn, can_be_primary)


class PgConnection:
    """A single host. Every query opens and closes its own connection."""

    def __init__(self, host: PgHost):
        self.host = not_none(host, "host")

    @classmethod
    def from_dsn(cls, dsn: str) -> PgConnection:
        return cls(PgHost.from_dsn(dsn))

    def execute_query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        logger.debug("Executing query on %s", self.host.display_name)
        conn = connect(dsn=self.host.dsn)
        with contextlib.closing(conn):
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]

    def __eq__(self, other):
        if not isinstance(other, PgConnection):
            return NotImplemented
        return self.host == other.host

    def __hash__(self):
        return hash(self.host)

    def __repr__(self):
        return f"<{type(self).__name__} {self.host.display_name}>"


def is_primary(connection: PgConnection) -> bool:
    rows = connection.execute_query("select not pg_is_in_recovery() as is_primary")
    return bool(rows[0]["is_primary"])


def get_pg_version(connection: PgConnection) -> str:
    """Return the PostgreSQL server version string."""
    rows = connection.execute_query("select version() as version")
    return rows[0]["version"] if rows else ""


class HighAvailabilityPgConnection:
    """A primary plus zero or more replicas of one cluster."""

    def __init__(self, primary: PgConnection, connections: Iterable[PgConnection] | None = None):
        not_none(primary, "primary")
        hosts = list(connections) if connections is not None else [primary]
        if primary not in hosts:
            raise ValueError("Primary connection should be present in the cluster connections")
        replicas = sorted(
            {c for c in hosts if c != primary},
            key=lambda c: (c.host.name, c.host.port),
        )
        self._primary = primary
        self._connections = (primary, *replicas)

    @property
    def connection_to_primary(self) -> PgConnection:
        return self._primary

    @property
    def connections_to_all_hosts(self) -> tuple[PgConnection, ...]:
        """All hosts, primary first, then replicas ordered by host name and port."""
        return self._connections

    def connections_for(self, diagnostic) -> tuple[PgConnection, ...]:
        if diagnostic.merge_policy.is_cluster_wide:
            return self._connections
        return (self._primary,)

    @classmethod
    def of_primary(cls, primary: PgConnection) -> HighAvailabilityPgConnection:
        return cls(primary)

    @classmethod
    def from_dsn(cls, dsn: str) -> HighAvailabilityPgConnection:
        return cls.from_dsns([dsn])

    @classmethod
    def from_dsns(cls, dsns: Iterable[str]) -> HighAvailabilityPgConnection:
        """Build a topology from one or more (possibly multi-host) DSNs.

        Every host must be reachable and exactly one of them must be the
        primary; otherwise :class:`TopologyError` is raised.
        """
        host_dsns = sorted({d for dsn in not_none(dsns, "dsns") for d in split_hosts(dsn)})
        if not host_dsns:
            raise TopologyError("No hosts given")
        connections = [PgConnection.from_dsn(d) for d in host_dsns]

        primaries = []
        for connection in connections:
            try:
                if is_primary(connection):
                    primaries.append(connection)
            except psycopg2.Error as exc:
                raise TopologyError(
                    f"Host {connection.host.display_name} is unreachable: {str(exc).strip()}"
                ) from exc

        if len(primaries) != 1:
            names = ", ".join(p.host.display_name for p in primaries) or "none"
            raise TopologyError(f"Expected exactly one primary, found: {names}")
        logger.info("Primary host is %s", primaries[0].host.display_name)
        return cls(primaries[0], connections)
