"""Read-only access to the cumulative statistics of a host."""

from __future__ import annotations

from datetime import datetime, timezone

STATS_RESET_QUERY = (
    "select stats_reset from pg_catalog.pg_stat_database where datname = current_database()"
)


def get_last_stats_reset_timestamp(connection) -> datetime | None:
    """Return when statistics of the current database were last reset, or None if never."""
    rows = connection.execute_query(STATS_RESET_QUERY)
    if not rows:
        return None
    return rows[0].get("stats_reset")


def last_stats_reset_message(timestamp: datetime | None, now: datetime | None = None) -> str:
    if timestamp is None:
        return "Statistics have never been reset on this host"
    if now is None:
        now = datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    days = (now - timestamp).days
    return f"Last statistics reset on this host was {days} days ago ({timestamp.isoformat()})"
