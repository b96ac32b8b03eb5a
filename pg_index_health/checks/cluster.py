"""Running a diagnostic across a cluster and reconciling per-host results.

Primary-only diagnostics query just the primary. Cluster-wide diagnostics
query every host, primary first, and merge the per-host lists:

* ``UNION`` keeps an object reported by at least one host (a table scanned
  sequentially on any replica is missing an index);
* ``INTERSECTION`` keeps an object reported by every host (an index is unused
  only if no host uses it).

Merged output is sorted by natural key, so it does not depend on the order
in which hosts answered.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Sequence

from pg_index_health.checks.diagnostic import STANDARD_DIAGNOSTICS, MergePolicy
from pg_index_health.checks.host import run_check_on_host
from pg_index_health.context import PgContext
from pg_index_health.errors import DiagnosticExecutionError
from pg_index_health.models import DbObject
from pg_index_health.predicates import keep_all
from pg_index_health.statistics import get_last_stats_reset_timestamp, last_stats_reset_message
from pg_index_health.validation import not_none

logger = logging.getLogger(__name__)


def _merge_key(obj: DbObject) -> tuple:
    return type(obj).__name__, obj.natural_key


def merge_as_union(results_per_host: Sequence[Iterable[DbObject]]) -> tuple[DbObject, ...]:
    """Objects present on at least one host; the first host reporting an object wins.

    Objects are matched by type and natural key, so the same index reported
    with different sizes by two hosts is kept once.
    """
    merged: dict[tuple, DbObject] = {}
    for host_results in results_per_host:
        for obj in host_results:
            merged.setdefault(_merge_key(obj), obj)
    return tuple(sorted(merged.values()))


def merge_as_intersection(results_per_host: Sequence[Iterable[DbObject]]) -> tuple[DbObject, ...]:
    """Objects present on every host (by type and natural key), taken from the first host's list."""
    if not results_per_host:
        return ()
    first, *others = [list(r) for r in results_per_host]
    common = {_merge_key(obj) for obj in first}
    for host_results in others:
        common &= {_merge_key(obj) for obj in host_results}
    merged: dict[tuple, DbObject] = {}
    for obj in first:
        key = _merge_key(obj)
        if key in common:
            merged.setdefault(key, obj)
    return tuple(sorted(merged.values()))


_MERGERS = {
    MergePolicy.UNION: merge_as_union,
    MergePolicy.INTERSECTION: merge_as_intersection,
}


def _log_last_stats_reset(diagnostic, connection) -> None:
    try:
        timestamp = get_last_stats_reset_timestamp(connection)
    except Exception as exc:
        raise DiagnosticExecutionError(diagnostic, connection.host, exc) from exc
    logger.info("%s: %s", connection.host.display_name, last_stats_reset_message(timestamp))


def run_check(
    diagnostic,
    ha_connection,
    pg_context: PgContext,
    exclusions: Callable[[DbObject], bool] = keep_all,
    max_workers: int = 1,
) -> tuple[DbObject, ...]:
    """Execute ``diagnostic`` on the hosts its merge policy requires.

    Any per-host failure propagates as :class:`DiagnosticExecutionError`;
    partial results are never returned.
    """
    not_none(diagnostic, "diagnostic")
    not_none(ha_connection, "ha_connection")
    not_none(pg_context, "pg_context")
    not_none(exclusions, "exclusions")
    if max_workers < 1:
        raise ValueError("max_workers should be greater than zero")

    if diagnostic.merge_policy is MergePolicy.PRIMARY_ONLY:
        return run_check_on_host(diagnostic, ha_connection.connection_to_primary, pg_context, exclusions)

    connections = ha_connection.connections_for(diagnostic)

    def check_host(connection):
        if diagnostic.merge_policy is MergePolicy.INTERSECTION:
            _log_last_stats_reset(diagnostic, connection)
        return run_check_on_host(diagnostic, connection, pg_context, exclusions)

    if max_workers > 1 and len(connections) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(connections))) as executor:
            results_per_host = list(executor.map(check_host, connections))
    else:
        results_per_host = [check_host(c) for c in connections]

    for connection, host_results in zip(connections, results_per_host):
        logger.debug("%s on %s: %d objects", diagnostic.check_name,
                     connection.host.display_name, len(host_results))
    merged = _MERGERS[diagnostic.merge_policy](results_per_host)
    logger.debug("%s merged as %s: %d objects", diagnostic.check_name,
                 diagnostic.merge_policy.value, len(merged))
    return merged


class DatabaseChecks:
    """Diagnostics bound to one cluster."""

    def __init__(self, ha_connection, max_workers: int = 1):
        self.ha_connection = not_none(ha_connection, "ha_connection")
        self.max_workers = max_workers

    def run_check(self, diagnostic, pg_context: PgContext | None = None,
                  exclusions: Callable[[DbObject], bool] = keep_all) -> tuple[DbObject, ...]:
        return run_check(diagnostic, self.ha_connection, pg_context or PgContext.of_default(),
                         exclusions, self.max_workers)

    def run_check_on_host(self, diagnostic, connection=None, pg_context: PgContext | None = None,
                          exclusions: Callable[[DbObject], bool] = keep_all) -> tuple[DbObject, ...]:
        return run_check_on_host(diagnostic, connection or self.ha_connection.connection_to_primary,
                                 pg_context or PgContext.of_default(), exclusions)

    def run_all(self, pg_context: PgContext | None = None,
                exclusions: Callable[[DbObject], bool] = keep_all,
                diagnostics: Iterable = STANDARD_DIAGNOSTICS) -> dict:
        """Run every diagnostic and map it to its results."""
        return {d: self.run_check(d, pg_context, exclusions) for d in diagnostics}
