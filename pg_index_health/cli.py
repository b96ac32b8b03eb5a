"""CLI entry point for pg-index-health."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from pg_index_health import __version__

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PROBLEMS_FOUND = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-index-health",
        description="Check the schema health of a PostgreSQL cluster (primary and replicas).",
    )
    parser.add_argument("--version", action="version", version=f"pg-index-health {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands (default: scan)")

    # -- scan --
    scan_parser = subparsers.add_parser("scan", help="Run diagnostics against a cluster")
    _add_connection_args(scan_parser)
    _add_output_args(scan_parser)
    scan_parser.add_argument(
        "--schema",
        "-s",
        action="append",
        dest="schemas",
        help="Schema to check; repeat for several (default: from config, else public)",
    )
    scan_parser.add_argument("--config", "-c", help="Path to a pg-index-health.yaml file")
    scan_parser.add_argument(
        "--categories",
        help="Comma-separated list of diagnostic categories to run (default: all)",
    )
    scan_parser.add_argument("--exclude", help="Comma-separated diagnostic names to skip")
    scan_parser.add_argument("--include-only", help="Comma-separated diagnostic names to run exclusively")
    scan_parser.add_argument(
        "--static-only",
        action="store_true",
        help="Skip runtime diagnostics that depend on collected statistics",
    )
    scan_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Hosts queried concurrently by cluster-wide diagnostics (default: 1)",
    )
    scan_parser.add_argument("--verbose", "-v", action="store_true", help="Print progress")

    # -- settings --
    settings_parser = subparsers.add_parser(
        "settings", help="Show important server parameters still at their default values"
    )
    _add_connection_args(settings_parser)

    # -- list-checks --
    list_parser = subparsers.add_parser("list-checks", help="List all available diagnostics")
    list_parser.add_argument(
        "--categories",
        help="Comma-separated list of categories to filter",
    )
    list_parser.add_argument(
        "--static-only",
        action="store_true",
        help="Only list diagnostics that do not depend on collected statistics",
    )

    return parser


def _add_connection_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("connection")
    grp.add_argument(
        "--dsn",
        action="append",
        help="PostgreSQL connection URI or DSN; may list several hosts and may be repeated",
    )
    grp.add_argument("--host", "-H", default=None, help="Database host(s), comma-separated")
    grp.add_argument("--port", "-p", type=int, default=5432, help="Database port (default: 5432)")
    grp.add_argument("--dbname", "-d", default=None, help="Database name")
    grp.add_argument("--user", "-U", default=None, help="Database user")
    grp.add_argument("--password", "-W", default=None, help="Database password")


def _add_output_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("output")
    grp.add_argument(
        "--format",
        "-f",
        choices=["json", "keyvalue"],
        default="keyvalue",
        help="Report format (default: keyvalue)",
    )
    grp.add_argument("--output", "-o", help="Output file path (default: stdout)")


def _split(value: str | None) -> set[str] | None:
    if value is None:
        return None
    return {item.strip() for item in value.split(",") if item.strip()}


def main(argv: list[str] | None = None):
    parser = build_parser()

    # Default to "scan" when no subcommand is given but arguments are present
    raw_args = argv if argv is not None else sys.argv[1:]
    known_commands = {"scan", "list-checks", "settings"}
    if raw_args and raw_args[0] not in known_commands and raw_args[0] not in ("--version", "--help", "-h"):
        raw_args = ["scan"] + list(raw_args)
    elif not raw_args:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    args = parser.parse_args(raw_args)

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    if args.command == "list-checks":
        _cmd_list_checks(args)
    elif args.command == "scan":
        sys.exit(_cmd_scan(args))
    elif args.command == "settings":
        sys.exit(_cmd_settings(args))


def _cmd_list_checks(args):
    from pg_index_health.registry import discover_checks

    categories = args.categories.split(",") if args.categories else None
    checks = discover_checks(categories=categories, static_only=args.static_only)

    if not checks:
        print("No checks found.")
        return

    current_cat = None
    for check in sorted(checks, key=lambda c: c.category):
        if check.category != current_cat:
            current_cat = check.category
            print(f"\n[{current_cat}]")
        runtime_tag = "[runtime]" if check.runtime else ""
        print(f"  {check.check_name:45s} {runtime_tag:9s} {check.description}")


def _cmd_scan(args) -> int:
    import psycopg2

    from pg_index_health.config import load_config, merge_cli_with_config
    from pg_index_health.registry import discover_checks
    from pg_index_health.scanner import run_scan

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config)
        config = merge_cli_with_config(
            config,
            cli_schemas=args.schemas,
            cli_exclude=_split(args.exclude),
            cli_include_only=_split(args.include_only),
            cli_static_only=args.static_only,
        )
        pg_contexts = config.pg_contexts()
    except (OSError, ValueError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return EXIT_ERROR

    categories = args.categories.split(",") if args.categories else None
    diagnostics = discover_checks(
        categories=categories,
        static_only=config.checks.static_only,
        exclude=config.checks.exclude,
        include_only=config.checks.include_only,
    )

    ha_connection = _connect_cluster(args)
    if ha_connection is None:
        return EXIT_ERROR

    try:
        report = run_scan(
            ha_connection,
            pg_contexts=pg_contexts,
            exclusions=config.exclusions.to_predicate,
            diagnostics=diagnostics,
            database=args.dbname or "",
            verbose=args.verbose,
            max_workers=args.workers,
        )
    except psycopg2.Error as e:
        print(f"Error: Scan failed: {str(e).strip()}", file=sys.stderr)
        return EXIT_ERROR

    output = _render_report(report, args.format)
    _write_output(output, args)
    return EXIT_PROBLEMS_FOUND if report.has_problems else EXIT_OK


def _connect_cluster(args):
    """Resolve the cluster topology, printing a hint and returning None on failure."""
    from pg_index_health.connection import HighAvailabilityPgConnection, build_dsn
    from pg_index_health.errors import TopologyError

    dsns = args.dsn or [build_dsn(args.host, args.port, args.dbname, args.user, args.password)]
    try:
        return HighAvailabilityPgConnection.from_dsns(dsns)
    except (TopologyError, ValueError) as e:
        error_msg = str(e).strip()
        print("Error: Could not connect to the cluster.", file=sys.stderr)
        print(f"       {error_msg}", file=sys.stderr)
        if "no password supplied" in error_msg:
            print("\nHint: Use --password to provide a password, or set PGPASSWORD environment variable.", file=sys.stderr)
        elif "does not exist" in error_msg:
            print("\nHint: Check that the database name is correct.", file=sys.stderr)
        elif "Expected exactly one primary" in error_msg:
            print("\nHint: List every host of the cluster, including the primary.", file=sys.stderr)
        return None


def _cmd_settings(args) -> int:
    import psycopg2

    from pg_index_health.settings import params_with_default_values_per_host

    ha_connection = _connect_cluster(args)
    if ha_connection is None:
        return EXIT_ERROR
    try:
        per_host = params_with_default_values_per_host(ha_connection)
    except psycopg2.Error as e:
        print(f"Error: Could not read server settings: {str(e).strip()}", file=sys.stderr)
        return EXIT_ERROR

    found = False
    for host, params in per_host.items():
        for param in params:
            found = True
            print(f"{host}: {param.name}={param.value}")
    return EXIT_PROBLEMS_FOUND if found else EXIT_OK


def _write_output(output: str, args):
    """Write report to the given file or stdout."""
    if not args.output:
        sys.stdout.write(output)
        return

    parent = os.path.dirname(args.output)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(args.output, "w") as f:
        f.write(output)
    print(f"Report written to {args.output}", file=sys.stderr)


def _render_report(report, fmt: str) -> str:
    if fmt == "json":
        from pg_index_health.reporters.json_reporter import render
    elif fmt == "keyvalue":
        from pg_index_health.reporters.keyvalue_reporter import render
    else:
        raise ValueError(f"Unknown format: {fmt}")
    return render(report)
