"""Read-only inspection of server configuration parameters.

Reports the important parameters that still carry their stock PostgreSQL
default, which usually means the server was never tuned.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from pg_index_health.validation import not_blank, not_none

logger = logging.getLogger(__name__)

ALL_PARAMS_QUERY = "show all"
PARAM_QUERY = "select current_setting(%(param_name)s) as setting"


class ImportantParam(enum.Enum):
    """Parameters worth tuning on every server, with their stock defaults."""

    SHARED_BUFFERS = ("shared_buffers", "128MB")
    WORK_MEM = ("work_mem", "4MB")
    MAINTENANCE_WORK_MEM = ("maintenance_work_mem", "64MB")
    RANDOM_PAGE_COST = ("random_page_cost", "4")
    LOG_MIN_DURATION_STATEMENT = ("log_min_duration_statement", "-1")
    IDLE_IN_TRANSACTION_SESSION_TIMEOUT = ("idle_in_transaction_session_timeout", "0")
    STATEMENT_TIMEOUT = ("statement_timeout", "0")
    LOCK_TIMEOUT = ("lock_timeout", "0")
    EFFECTIVE_CACHE_SIZE = ("effective_cache_size", "4GB")
    TEMP_FILE_LIMIT = ("temp_file_limit", "-1")

    @property
    def param_name(self) -> str:
        return self.value[0]

    @property
    def default_value(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class PgParam:
    """A named server parameter and its current value."""

    name: str
    value: str

    def __post_init__(self):
        not_blank(self.name, "name")
        not_none(self.value, "value")

    @classmethod
    def of(cls, name: str, value: str) -> PgParam:
        return cls(name, value)


def get_params_current_values(connection) -> frozenset[PgParam]:
    """Every parameter of the host with its current value."""
    rows = connection.execute_query(ALL_PARAMS_QUERY)
    return frozenset(PgParam(row["name"], row["setting"]) for row in rows)


def get_param_current_value(connection, param) -> PgParam:
    """Current value of one parameter.

    ``param`` is an :class:`ImportantParam` or a plain parameter name. An
    unknown name fails with the driver's error.
    """
    name = param.param_name if isinstance(param, ImportantParam) else not_blank(param, "param")
    rows = connection.execute_query(PARAM_QUERY, {"param_name": name})
    return PgParam(name, rows[0]["setting"])


def get_params_with_default_values(connection) -> tuple[PgParam, ...]:
    """Important parameters still set to their stock default, sorted by name."""
    params = []
    for important_param in ImportantParam:
        current = get_param_current_value(connection, important_param)
        if current.value == important_param.default_value:
            params.append(current)
    logger.debug("%s: %d important params at default values",
                 connection.host.display_name, len(params))
    return tuple(sorted(params, key=lambda p: p.name))


def params_with_default_values_per_host(ha_connection) -> dict:
    """Map each host's display name to its important parameters left at defaults."""
    return {
        connection.host.display_name: get_params_with_default_values(connection)
        for connection in ha_connection.connections_to_all_hosts
    }
