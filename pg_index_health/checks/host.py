"""Running a diagnostic against a single host."""

from __future__ import annotations

import logging
from typing import Callable

from pg_index_health.context import PgContext
from pg_index_health.errors import DiagnosticExecutionError
from pg_index_health.models import DbObject
from pg_index_health.predicates import keep_all
from pg_index_health.sql_reader import read_query
from pg_index_health.validation import not_none

logger = logging.getLogger(__name__)


def run_check_on_host(
    diagnostic,
    connection,
    pg_context: PgContext,
    exclusions: Callable[[DbObject], bool] = keep_all,
) -> tuple[DbObject, ...]:
    """Execute ``diagnostic`` on one host and return the objects kept by ``exclusions``.

    Args:
        diagnostic: A :class:`~pg_index_health.checks.diagnostic.Diagnostic`.
        connection: The host to query (a ``PgConnection``).
        pg_context: Schema and thresholds bound to the query.
        exclusions: Predicate deciding which objects are reported.

    Returns:
        The surviving objects, in the order the query returned them.

    Raises:
        DiagnosticExecutionError: the query failed or a row could not be mapped.
    """
    not_none(diagnostic, "diagnostic")
    not_none(connection, "connection")
    not_none(pg_context, "pg_context")
    not_none(exclusions, "exclusions")

    query = read_query(diagnostic.sql_file)
    params = diagnostic.query_params.bind(pg_context)
    host = connection.host
    logger.debug("Running %s on %s with %s", diagnostic.check_name, host.display_name, params)

    try:
        rows = connection.execute_query(query, params)
        results = [diagnostic.extractor(row, pg_context) for row in rows]
    except Exception as exc:
        raise DiagnosticExecutionError(diagnostic, host, exc) from exc

    kept = tuple(obj for obj in results if exclusions(obj))
    logger.debug(
        "%s on %s: %d rows, %d after exclusions",
        diagnostic.check_name, host.display_name, len(results), len(kept),
    )
    return kept
