"""Selection of diagnostics from the standard bundle."""

from __future__ import annotations

from pg_index_health.checks.diagnostic import STANDARD_DIAGNOSTICS, Diagnostic

CATEGORIES = ("tables", "indexes", "columns", "constraints", "functions", "sequences", "objects")


def discover_checks(
    categories: list[str] | None = None,
    static_only: bool = False,
    exclude: set[str] | None = None,
    include_only: set[str] | None = None,
) -> list[Diagnostic]:
    """
    Select diagnostics from the standard bundle, keeping its order.

    Parameters:
        categories (list[str] | None): If provided, only include diagnostics whose `category` is in this list.
        static_only (bool): If True, leave out runtime diagnostics (those depending on accumulated statistics).
        exclude (set[str] | None): Diagnostic names to leave out.
        include_only (set[str] | None): If provided, only these diagnostic names are kept (before `exclude` applies).

    Returns:
        list[Diagnostic]: The selected diagnostics.
    """
    exclude = {name.lower() for name in exclude or ()}
    whitelist = {name.lower() for name in include_only} if include_only is not None else None

    selected = []
    for diagnostic in STANDARD_DIAGNOSTICS:
        if categories and diagnostic.category not in categories:
            continue
        if static_only and diagnostic.runtime:
            continue
        if whitelist is not None and diagnostic.check_name not in whitelist:
            continue
        if diagnostic.check_name in exclude:
            continue
        selected.append(diagnostic)
    return selected


def find_diagnostic(name: str) -> Diagnostic:
    """Resolve a diagnostic by its name, case-insensitively."""
    try:
        return Diagnostic[name.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown diagnostic: {name}") from None
