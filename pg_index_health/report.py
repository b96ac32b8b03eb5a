"""Data models for check results and health reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pg_index_health.models import DbObject


@dataclass
class CheckResult:
    check_name: str
    category: str
    description: str
    schema_name: str = "public"
    objects: list[DbObject] = field(default_factory=list)
    error: str | None = None

    @property
    def passed(self) -> bool:
        return not self.objects and not self.error


@dataclass
class HealthReport:
    database: str
    hosts: list[str]
    timestamp: datetime
    results: list[CheckResult] = field(default_factory=list)
    pg_version: str = ""

    @property
    def objects(self) -> list[DbObject]:
        all_objects = []
        for r in self.results:
            all_objects.extend(r.objects)
        return all_objects

    @property
    def checks_total(self) -> int:
        return len(self.results)

    @property
    def checks_passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def checks_failed(self) -> int:
        return sum(1 for r in self.results if r.objects and not r.error)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.error)

    @property
    def has_problems(self) -> bool:
        return self.checks_failed > 0 or self.errors > 0

    def counts(self) -> dict[str, int]:
        """Number of reported objects per diagnostic, summed over schemas."""
        totals: dict[str, int] = {}
        for r in self.results:
            totals[r.check_name] = totals.get(r.check_name, 0) + len(r.objects)
        return totals
