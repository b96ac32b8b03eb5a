"""Scanner orchestrator: runs diagnostics per schema and collects results."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Callable, Iterable

from pg_index_health.checks.cluster import run_check
from pg_index_health.checks.diagnostic import STANDARD_DIAGNOSTICS
from pg_index_health.connection import get_pg_version
from pg_index_health.context import PgContext
from pg_index_health.errors import PgIndexHealthError
from pg_index_health.models import DbObject
from pg_index_health.predicates import keep_all
from pg_index_health.report import CheckResult, HealthReport

logger = logging.getLogger(__name__)


def run_scan(
    ha_connection,
    pg_contexts: Iterable[PgContext] | None = None,
    exclusions: Callable[[PgContext], Callable[[DbObject], bool]] | None = None,
    diagnostics: Iterable = STANDARD_DIAGNOSTICS,
    database: str = "",
    verbose: bool = False,
    max_workers: int = 1,
) -> HealthReport:
    """Execute diagnostics against the cluster for every schema.

    Args:
        ha_connection: HighAvailabilityPgConnection of the cluster.
        pg_contexts: Schemas (with thresholds) to check; defaults to ``public``.
        exclusions: Builds the exclusion predicate for a given context
            (e.g. ``Exclusions.to_predicate``); None keeps everything.
        diagnostics: Diagnostics to run, in order.
        database: Database name for the report.
        verbose: Print progress to stderr.
        max_workers: Hosts queried concurrently by cluster-wide diagnostics.

    Returns:
        HealthReport with one result per (schema, diagnostic).
    """
    contexts = list(pg_contexts or [PgContext.of_default()])
    diagnostics = list(diagnostics)
    primary = ha_connection.connection_to_primary

    report = HealthReport(
        database=database,
        hosts=[c.host.display_name for c in ha_connection.connections_to_all_hosts],
        timestamp=datetime.now(timezone.utc),
        pg_version=get_pg_version(primary),
    )

    total = len(diagnostics) * len(contexts)
    if verbose:
        print(
            f"Health scan: running {total} checks against {len(report.hosts)} host(s)...",
            file=sys.stderr,
        )

    i = 0
    for pg_context in contexts:
        predicate = exclusions(pg_context) if exclusions is not None else keep_all
        for diagnostic in diagnostics:
            i += 1
            if verbose:
                print(
                    f"  [{i}/{total}] {pg_context.schema_name}/{diagnostic.check_name}: "
                    f"{diagnostic.description}",
                    file=sys.stderr,
                )

            result = CheckResult(
                check_name=diagnostic.check_name,
                category=diagnostic.category,
                description=diagnostic.description,
                schema_name=pg_context.schema_name,
            )

            try:
                result.objects = list(run_check(diagnostic, ha_connection, pg_context, predicate, max_workers))
            except PgIndexHealthError as exc:
                result.error = str(exc)
                logger.error("%s", exc)
                if verbose:
                    print(f"    ERROR: {result.error}", file=sys.stderr)

            if result.objects:
                logger.warning(
                    "%s found %d object(s) in schema %s",
                    diagnostic.check_name, len(result.objects), pg_context.schema_name,
                )
            report.results.append(result)

    if verbose:
        print(
            f"Done. {report.checks_passed} passed, "
            f"{report.checks_failed} with findings, "
            f"{report.errors} errors.",
            file=sys.stderr,
        )

    return report
