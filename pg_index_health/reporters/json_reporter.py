"""JSON report renderer."""

from __future__ import annotations

import dataclasses
import enum
import json

from pg_index_health import __version__
from pg_index_health.models import DbObject
from pg_index_health.report import HealthReport


def serialize_object(obj: DbObject) -> dict:
    """Flatten a reported object into JSON-friendly values."""
    data = {
        "type": type(obj).__name__,
        "name": obj.name,
        "object_type": obj.object_type.value,
    }
    for f in dataclasses.fields(obj):
        data[f.name] = _to_json(getattr(obj, f.name))
    return data


def _to_json(value):
    if isinstance(value, DbObject):
        return serialize_object(value)
    if isinstance(value, (tuple, list)):
        return [_to_json(v) for v in value]
    if isinstance(value, enum.Enum):
        return value.value
    return value


def render(report: HealthReport) -> str:
    """Render a HealthReport as a JSON string."""
    data = {
        "meta": {
            "tool": "pg-index-health",
            "version": __version__,
            "timestamp": report.timestamp.isoformat(),
            "database": report.database,
            "hosts": report.hosts,
            "pg_version": report.pg_version,
        },
        "summary": {
            "total_checks": report.checks_total,
            "checks_passed": report.checks_passed,
            "checks_failed": report.checks_failed,
            "errors": report.errors,
        },
        "results": [],
    }

    for result in report.results:
        data["results"].append({
            "check_name": result.check_name,
            "category": result.category,
            "description": result.description,
            "schema": result.schema_name,
            "passed": result.passed,
            "error": result.error,
            "objects": [serialize_object(o) for o in result.objects],
        })

    return json.dumps(data, indent=2, default=str)
