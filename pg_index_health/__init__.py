"""pg-index-health: schema health checks for PostgreSQL clusters."""

__version__ = "0.1.0"
