"""Exception hierarchy for diagnostic execution."""

from __future__ import annotations


class PgIndexHealthError(Exception):
    """Base exception for failures while evaluating a diagnostic."""


class DiagnosticExecutionError(PgIndexHealthError):
    """Raised when a diagnostic query cannot be executed or its rows mapped.

    Wraps the original driver or extraction error, which is available as
    ``__cause__`` and ``cause``.
    """

    def __init__(self, diagnostic, host, cause: BaseException) -> None:
        self.diagnostic = diagnostic
        self.host = host
        self.cause = cause
        diagnostic_name = getattr(diagnostic, "check_name", str(diagnostic))
        host_name = getattr(host, "display_name", str(host))
        super().__init__(
            f"Diagnostic '{diagnostic_name}' failed on host {host_name}: "
            f"{type(cause).__name__}: {str(cause).strip()}"
        )


class TopologyError(PgIndexHealthError):
    """Raised when the cluster topology (primary and replicas) cannot be resolved."""
