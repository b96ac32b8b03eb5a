"""Diagnostics and the engine running them on a cluster."""

from pg_index_health.checks.cluster import DatabaseChecks, merge_as_intersection, merge_as_union, run_check
from pg_index_health.checks.diagnostic import STANDARD_DIAGNOSTICS, Diagnostic, MergePolicy, QueryParams
from pg_index_health.checks.host import run_check_on_host

__all__ = [
    "STANDARD_DIAGNOSTICS",
    "DatabaseChecks",
    "Diagnostic",
    "MergePolicy",
    "QueryParams",
    "merge_as_intersection",
    "merge_as_union",
    "run_check",
    "run_check_on_host",
]
