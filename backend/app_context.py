"""Process-wide hook that lets repositories open PostgreSQL connections.

``backend.main`` registers its connection factory at import time. Repositories
built without an explicit connection open one through :func:`open_connection`.
"""
from __future__ import annotations

from typing import Callable, Optional

from psycopg2.extensions import connection as PgConnection

ConnectionFactory = Callable[[], PgConnection]

_connection_factory: Optional[ConnectionFactory] = None


class ConnectionNotConfiguredError(RuntimeError):
    """Raised when a repository needs a connection before one was registered."""


def register_connection_factory(factory: ConnectionFactory) -> None:
    global _connection_factory
    _connection_factory = factory


def open_connection() -> PgConnection:
    if _connection_factory is None:
        raise ConnectionNotConfiguredError("No database connection factory has been registered")
    return _connection_factory()
