"""Key-value renderer: one ``<diagnostic>:<count>`` line per diagnostic."""

from __future__ import annotations

from pg_index_health.report import HealthReport


def render(report: HealthReport) -> str:
    lines = [f"{name}:{count}" for name, count in report.counts().items()]
    return "\n".join(lines) + ("\n" if lines else "")
