"""Loading of the diagnostic queries shipped as package data."""

from __future__ import annotations

import functools
import re
from importlib import resources

SQL_PACKAGE = "pg_index_health.sql"

_NAMED_PARAM = re.compile(r"(?<![:\w]):([A-Za-z_][A-Za-z0-9_]*)")


def to_driver_placeholders(query: str) -> str:
    """Rewrite ``:name`` parameters to psycopg2's ``%(name)s`` form.

    Literal ``%`` signs are doubled and ``::type`` casts are left alone.
    """
    escaped = query.replace("%", "%%")
    return _NAMED_PARAM.sub(r"%(\1)s", escaped)


def _strip_trailing_semicolon(query: str) -> str:
    query = query.strip()
    while query.endswith(";"):
        query = query[:-1].rstrip()
    return query


def validate_query(query: str, source: str = "<query>") -> str:
    """Return the query without a trailing semicolon; reject blank or multi-statement text."""
    if query is None or not query.strip():
        raise ValueError(f"Query in {source} cannot be blank")
    body = _strip_trailing_semicolon(query)
    if not body:
        raise ValueError(f"Query in {source} cannot be blank")
    if ";" in _without_literals(body):
        raise ValueError(f"Query in {source} should contain exactly one statement")
    return body


def _without_literals(query: str) -> str:
    query = re.sub(r"'(?:[^']|'')*'", "''", query)
    query = re.sub(r"--[^\n]*", "", query)
    return query


@functools.lru_cache(maxsize=None)
def read_query(sql_file: str) -> str:
    """Read ``sql_file`` from the package and return it in driver placeholder form."""
    text = resources.files(SQL_PACKAGE).joinpath(sql_file).read_text(encoding="utf-8")
    return to_driver_placeholders(validate_query(text, sql_file))
