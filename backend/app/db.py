"""Connection and error helpers shared by the PostgreSQL repositories."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

try:  # pragma: no cover - resolve connection helper when imported from FastAPI app
    from backend.app_context import open_connection
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ..app_context import open_connection  # type: ignore[no-redef]


class DuplicateKeyError(Exception):
    """Raised when an insert collides with a unique constraint."""

    def __init__(self, constraint: Optional[str] = None) -> None:
        self.constraint = constraint
        message = "Duplicate key"
        if constraint:
            message = f"Duplicate key violates {constraint}"
        super().__init__(message)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = open_connection()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresRepository:
    """Base class giving repositories a dict cursor bound to one transaction."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except psycopg2.errors.UniqueViolation as exc:
                if managed:
                    connection.rollback()
                constraint = getattr(getattr(exc, "diag", None), "constraint_name", None)
                raise DuplicateKeyError(constraint) from exc
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()


__all__ = ["DuplicateKeyError", "PostgresRepository", "managed_connection"]
